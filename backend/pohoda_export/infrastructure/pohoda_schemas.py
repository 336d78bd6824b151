"""Pohoda Schema Loader — compiles the bundled XSD set once per process.

Invariants:
    - data.xsd is the entry point; invoice/list/filter/type are pulled in via xs:import
    - Schemas load from package files only, never from the network

Design Decisions:
    - lru_cache over a module global: lazy, and tests can cache_clear()
"""

import logging
from functools import lru_cache
from pathlib import Path

from lxml import etree

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / "xsd"
SCHEMA_FILES = ("data.xsd", "invoice.xsd", "type.xsd", "list.xsd", "filter.xsd")


@lru_cache
def load_pohoda_schema() -> etree.XMLSchema:
    """Compile data.xsd with its imports. Raises etree.XMLSchemaParseError on a broken set."""
    missing = [name for name in SCHEMA_FILES if not (SCHEMA_DIR / name).is_file()]
    if missing:
        raise FileNotFoundError(f"Pohoda XSD files missing: {', '.join(missing)}")
    parser = etree.XMLParser(no_network=True, resolve_entities=False)
    document = etree.parse(str(SCHEMA_DIR / "data.xsd"), parser)
    schema = etree.XMLSchema(document)
    logger.debug(f"Pohoda XSD set loaded from {SCHEMA_DIR}")
    return schema
