"""
Pascal VOC XML export: one Annotations/*.xml per image, images in JPEGImages/.
"""

import logging
from typing import Sequence
from xml.etree.ElementTree import Element, SubElement, indent, tostring

from annotix.bundle import Bundle
from annotix.models import ClassList, ImageRecord, Project

logger = logging.getLogger(__name__)


def voc_xml(image: ImageRecord, classes: ClassList) -> tuple[str, int]:
    """
    VOC annotation document for one image. Only bounding boxes are written,
    with pixel coordinates rounded to integers.

    Returns:
        (xml text, number of objects)
    """
    filename = image.filename

    root = Element("annotation")
    SubElement(root, "folder").text = "VOC"
    SubElement(root, "filename").text = filename
    SubElement(root, "path").text = filename
    source = SubElement(root, "source")
    SubElement(source, "database").text = "Annotix"

    size = SubElement(root, "size")
    SubElement(size, "width").text = str(image.width)
    SubElement(size, "height").text = str(image.height)
    SubElement(size, "depth").text = "3"
    SubElement(root, "segmented").text = "0"

    count = 0
    for ann in image.annotations:
        if ann.type != "bbox":
            continue
        box = ann.data

        obj = SubElement(root, "object")
        SubElement(obj, "name").text = classes.name_of(ann.class_id)
        SubElement(obj, "pose").text = "Unspecified"
        SubElement(obj, "truncated").text = "0"
        SubElement(obj, "difficult").text = "0"

        bndbox = SubElement(obj, "bndbox")
        SubElement(bndbox, "xmin").text = str(round(box.x))
        SubElement(bndbox, "ymin").text = str(round(box.y))
        SubElement(bndbox, "xmax").text = str(round(box.x + box.width))
        SubElement(bndbox, "ymax").text = str(round(box.y + box.height))
        count += 1

    indent(root, space="    ")
    return tostring(root, encoding="unicode") + "\n", count


def write_voc(bundle: Bundle, project: Project, images: Sequence[ImageRecord]) -> list[int]:
    """Write JPEGImages/ and Annotations/ (an XML for every image, even empty)."""
    classes = project.class_list()
    counts = []
    for image in images:
        bundle.write_image(f"JPEGImages/{image.filename}", image)
        xml, count = voc_xml(image, classes)
        bundle.write_text(f"Annotations/{image.stem}.xml", xml)
        counts.append(count)
    return counts
