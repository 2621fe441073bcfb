"""
Generated model classes for object definitions.

Each object definition gets one pydantic class in a shared module. Classes
are found again by regex on their ``class <Name>(BaseModel):`` block, so the
file must keep the layout written here: a class header followed by indented
lines.
"""

import keyword
import logging
import os
import re
from typing import Optional

from designer.app.core.config import settings
from designer.app.models.interface import InterfaceStatus
from designer.app.models.object_def import ObjectDef, ObjectField

logger = logging.getLogger(__name__)

MODULE_HEADER = '''"""Models generated from designer object definitions. Edits are overwritten."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field
'''

PYTHON_TYPES = {
    "string": "str",
    "number": "float",
    "boolean": "bool",
    "date": "Union[datetime, str]",
    "array": "List[Any]",
    "object": "Dict[str, Any]",
}


def _class_pattern(interface_name: str) -> "re.Pattern[str]":
    return re.compile(
        rf"^class\s+{re.escape(interface_name)}\(BaseModel\):[^\n]*\n(?:(?:[ \t]+[^\n]*)?\n)*",
        re.MULTILINE,
    )


def _normalize(content: str) -> str:
    content = re.sub(r"\n{4,}", "\n\n\n", content)
    return content.rstrip("\n") + "\n"


def generate_interface_name(object_name: str) -> str:
    """PascalCase name for an object: ``user-profile`` -> ``UserProfile``."""
    words = [w for w in re.split(r"[-_\s]+", object_name) if w]
    name = "".join(w[:1].upper() + w[1:].lower() for w in words)
    name = re.sub(r"\W", "", name)
    if not name or name[0].isdigit():
        name = f"Model{name}"
    return name


def _attribute_name(field_name: str) -> str:
    name = re.sub(r"\W", "_", field_name)
    if not name or name[0].isdigit() or name.startswith("_") or keyword.iskeyword(name):
        name = f"field_{name.lstrip('_')}"
    return name


def generate_field_definition(field: ObjectField) -> str:
    py_type = PYTHON_TYPES.get(field.type or "", "Any")
    attribute = _attribute_name(field.name)
    aliased = attribute != field.name

    if field.required:
        if aliased:
            return f'    {attribute}: {py_type} = Field(alias="{field.name}")'
        return f"    {attribute}: {py_type}"

    if aliased:
        return f'    {attribute}: Optional[{py_type}] = Field(default=None, alias="{field.name}")'
    return f"    {attribute}: Optional[{py_type}] = None"


def generate_interface(object_def: ObjectDef) -> str:
    lines = [f"class {generate_interface_name(object_def.name)}(BaseModel):"]
    lines.extend(generate_field_definition(f) for f in object_def.fields)
    if len(lines) == 1:
        lines.append("    pass")
    return "\n".join(lines)


def _read(path: str) -> str:
    if not os.path.exists(path):
        return ""
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()
    if content and not content.endswith("\n"):
        content += "\n"
    return content


def _write(path: str, content: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def check_interface_exists(object_name: str, object_def: Optional[ObjectDef] = None, path: Optional[str] = None) -> InterfaceStatus:
    path = path or settings.CUSTOM_MODELS_PATH
    interface_name = generate_interface_name(object_name)
    try:
        content = _read(path)
    except OSError as e:
        logger.error("Error reading %s: %s", path, e)
        return InterfaceStatus(exists=False, interface_name=interface_name)

    match = _class_pattern(interface_name).search(content)
    if match is None:
        return InterfaceStatus(exists=False, interface_name=interface_name)

    needs_update = None
    if object_def is not None:
        needs_update = match.group(0).strip() != generate_interface(object_def)
    return InterfaceStatus(exists=True, interface_name=interface_name, needs_update=needs_update)


def add_interface_to_file(object_def: ObjectDef, path: Optional[str] = None) -> str:
    """Replace the object's class if present, otherwise append it. Returns the class name."""
    path = path or settings.CUSTOM_MODELS_PATH
    interface_name = generate_interface_name(object_def.name)
    code = generate_interface(object_def)

    content = _read(path)
    if not content.strip():
        content = MODULE_HEADER

    pattern = _class_pattern(interface_name)
    if pattern.search(content):
        content = pattern.sub(lambda _m: code + "\n\n\n", content, count=1)
        logger.info("Updated model %s in %s", interface_name, path)
    else:
        content = content.rstrip("\n") + "\n\n\n" + code + "\n"
        logger.info("Added model %s to %s", interface_name, path)

    _write(path, _normalize(content))
    return interface_name


def remove_interface_from_file(object_name: str, path: Optional[str] = None) -> bool:
    path = path or settings.CUSTOM_MODELS_PATH
    if not os.path.exists(path):
        return False

    interface_name = generate_interface_name(object_name)
    content = _read(path)
    new_content = _class_pattern(interface_name).sub("", content)
    if new_content == content:
        return False

    _write(path, _normalize(new_content))
    logger.info("Removed model %s from %s", interface_name, path)
    return True
