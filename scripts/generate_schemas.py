# scripts/generate_schemas.py
"""Write JSON schemas for the public wire models."""

from __future__ import annotations

import argparse
import json
from inspect import isclass
from pathlib import Path

import petstory.models as models
from petstory.models import PetstoryBaseModel


def iter_models() -> list[type[PetstoryBaseModel]]:
    """Return public models that subclass :class:`PetstoryBaseModel`."""
    result: list[type[PetstoryBaseModel]] = []
    for name in getattr(models, "__all__", []):
        obj = getattr(models, name, None)
        if isclass(obj) and issubclass(obj, PetstoryBaseModel) and obj is not PetstoryBaseModel:
            result.append(obj)
    return result


def write_schemas(out_dir: Path) -> list[Path]:
    """Dump one camelCase schema file per model into ``out_dir``."""
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for model in iter_models():
        schema = model.model_json_schema(by_alias=True)
        path = out_dir / f"{model.__name__}.json"
        path.write_text(json.dumps(schema, indent=2, sort_keys=True))
        written.append(path)
    return written


def main() -> None:  # pragma: no cover - script entry
    root = Path(__file__).resolve().parents[1]
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--out", type=Path, default=root / "docs" / "schemas")
    args = parser.parse_args()
    for path in write_schemas(args.out):
        print(path)


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()
