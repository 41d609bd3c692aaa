from __future__ import annotations
from typing import Any, Dict, Mapping
from flask import abort


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Mapping[str, Any]):
    """Narrow a list query from query-string parameters.

    Each spec entry maps a parameter name to:
      op        callable(query, value) -> query
      coerce    optional converter applied to the raw string
      validate  optional predicate on the converted value
      multi     when true, ``a,b,c`` is split and op receives a list

    Empty parameters are ignored; a failed coerce or validate aborts 400.
    """
    for name, spec in specs.items():
        raw = params.get(name)
        if raw is None or raw == '':
            continue
        values = [v.strip() for v in str(raw).split(',') if v.strip()] if spec.get('multi') else [raw]
        converted = []
        for value in values:
            if 'coerce' in spec:
                try:
                    value = spec['coerce'](value)
                except (TypeError, ValueError):
                    abort(400, description=f'{name} invalid')
            if 'validate' in spec and not spec['validate'](value):
                abort(400, description=f'{name} invalid')
            converted.append(value)
        if not converted:
            continue
        query = spec['op'](query, converted if spec.get('multi') else converted[0])
    return query
