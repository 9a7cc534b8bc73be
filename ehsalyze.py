#!/usr/bin/env python3
"""
ehsalyze.py

CLI entry point for EHSalyze: reads a PLC XML export (PLCopen / CODESYS),
finds every block instance wired to an EHS input and writes a CSV report of
each instance's fail-safe type.
Namespaces are stripped from tag and attribute names.
"""

import argparse
import logging
import sys
import xml.etree.ElementTree as ET
from pathlib import Path

from failsafe_blocks import ATTRS_KEY, extract_failsafe_records, summarize_records
from failsafe_report import write_csv_report

DEFAULT_INPUT_FILE = "test.xml"
DEFAULT_OUTPUT_FILE = "xmlout.csv"

TEXT_KEY = "_"

# ===================== XML -> parse tree =====================

def _localname(tag: str) -> str:
    """Return local element name sans namespace, e.g. '{ns}block' -> 'block'."""
    return tag.split('}', 1)[-1] if '}' in tag else tag

def _build_node(elem, built):
    attrs = {_localname(k): v for k, v in elem.attrib.items()}
    # own text plus the text following each child (mixed content)
    text = "".join([elem.text or ""] + [c.tail or "" for c in elem]).strip()

    children = {}
    for c in elem:
        if not isinstance(c.tag, str):
            continue  # comments / processing instructions
        tag = _localname(c.tag)
        node = built[id(c)]
        if tag not in children:
            children[tag] = node
        elif isinstance(children[tag], list):
            children[tag].append(node)
        else:
            children[tag] = [children[tag], node]

    if not attrs and not children:
        return text

    out = {}
    if attrs:
        out[ATTRS_KEY] = attrs
    out.update(children)
    # the element's own text wins over a child element named '_'
    if text:
        out[TEXT_KEY] = text
    return out

def element_to_node(elem):
    """
    Convert an Element into plain dict/list/str nesting.
    Attributes go under '$', text (including text between children) under
    '_' when the element also has attributes or children. A child tag seen
    once maps to its node, a repeated child tag maps to a list of nodes in
    document order. An element with only text becomes that text ('' when
    empty). Built bottom-up without recursion, so nesting depth is unbounded.
    """
    order = []
    stack = [elem]
    while stack:
        e = stack.pop()
        order.append(e)
        stack.extend(c for c in e if isinstance(c.tag, str))

    # parents precede their children in `order`
    built = {}
    for e in reversed(order):
        built[id(e)] = _build_node(e, built)
    return built[id(elem)]

def _root_to_tree(root) -> dict:
    return {_localname(root.tag): element_to_node(root)}

def parse_xml_text(xml_text: str) -> dict:
    """Parse document text into {root_tag: node}. Raises ET.ParseError."""
    return _root_to_tree(ET.fromstring(xml_text))

def load_parse_tree(path):
    """
    Read and parse a PLC XML file.
    Returns the parse tree, or None (after logging) if the file is missing,
    unreadable or not well-formed XML.
    """
    p = Path(path)
    if not p.exists():
        logging.error("File not found: %s", path)
        return None
    try:
        tree = ET.parse(p)
    except ET.ParseError as e:
        logging.error("Failed to parse XML %s: %s", path, e)
        return None
    except (OSError, UnicodeDecodeError) as e:
        logging.error("Failed to read %s: %s", path, e)
        return None

    logging.info("Loaded XML file: %s (%d bytes)", path, p.stat().st_size)
    return _root_to_tree(tree.getroot())

# ===================== main() =====================

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="EHSalyze: report the fail-safe type of PLC blocks wired to EHS inputs."
    )
    parser.add_argument("file", nargs="?", default=DEFAULT_INPUT_FILE,
                        help=f"Path to the PLC XML file (default: {DEFAULT_INPUT_FILE})")
    parser.add_argument("--out", default=DEFAULT_OUTPUT_FILE,
                        help=f"Path of the CSV report (default: {DEFAULT_OUTPUT_FILE})")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")
    logging.debug("Debug mode on")

    tree = load_parse_tree(args.file)
    if tree is None:
        logging.error('Add the requested XML file "%s" then try again.', args.file)
        return 1

    records = extract_failsafe_records(tree)
    try:
        out_path = write_csv_report(records, args.out)
    except OSError as e:
        logging.error("Failed to write report: %s", e)
        return 1
    if out_path is None:
        logging.info("No blocks found in the XML file.")
        return 0

    for fs_type, count in summarize_records(records).items():
        logging.info("%s: %d", fs_type, count)
    logging.info("Output saved to %s", out_path.resolve())
    return 0

if __name__ == "__main__":
    sys.exit(main())
