"""Reading task catalogs from disk.

`read_catalog_document` decodes a file into its raw top-level mapping;
`load_catalog` goes on to build a typed `Catalog`, raising `CatalogRejected`
with every shape error when the document does not describe one.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from approval_timeline.core.errors import CatalogLoadError, catalog_rejected
from approval_timeline.core.model import Catalog
from approval_timeline.core.validate.validate_tasks import parse_catalog

# suffix -> (parse error code, decoder, decoder's error type)
_DECODERS: dict[str, tuple[str, Callable[[str], Any], type[Exception]]] = {
    ".yaml": ("E_YAML_PARSE", yaml.safe_load, yaml.YAMLError),
    ".yml": ("E_YAML_PARSE", yaml.safe_load, yaml.YAMLError),
    ".json": ("E_JSON_PARSE", json.loads, json.JSONDecodeError),
}

CATALOG_KEYS = ("schema_version", "reference_date", "tasks")


def read_catalog_document(path: str) -> dict[str, Any]:
    """Decode a .yaml/.yml/.json catalog into its top-level mapping.

    Keys other than CATALOG_KEYS are dropped. Raises CatalogLoadError when the
    file is missing, unreadable, undecodable or not a mapping.
    """

    p = Path(path)
    decoder = _DECODERS.get(p.suffix.lower())
    if decoder is None:
        raise CatalogLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )
    if not p.is_file():
        raise CatalogLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))

    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CatalogLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    code, decode, decode_error = decoder
    try:
        data = decode(text)
    except decode_error as e:
        raise CatalogLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise CatalogLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )
    return {k: data[k] for k in CATALOG_KEYS if k in data}


def load_catalog(path: str) -> Catalog:
    """Load and shape-check a catalog file.

    Dependency references and cycles are not checked here; pass
    `catalog.tasks` to validate_tasks for that.
    """

    file = str(Path(path))
    catalog, errors = parse_catalog(read_catalog_document(path), file=file)
    if errors or catalog is None:
        raise catalog_rejected(errors, file=file)
    return catalog
