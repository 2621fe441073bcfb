import keyword
import logging
import os
import re
from collections import defaultdict
from typing import Dict, List, Optional

from designer.app.core.config import settings
from designer.app.models.interface import InterfaceInfo, InterfaceScanResult

logger = logging.getLogger(__name__)

CLASS_BLOCK = re.compile(r"^class\s+(\w+)(?:\([^)]*\))?\s*:[^\n]*\n((?:(?:[ \t]+[^\n]*)?\n)*)", re.MULTILINE)
DOCSTRING = re.compile(r'("""|\'\'\')[\s\S]*?\1')
FIELD_LINE = re.compile(r"^(\w+)\s*:\s*\S")


def default_scan_paths() -> List[str]:
    return [settings.CUSTOM_MODELS_PATH] + list(settings.INTERFACE_SCAN_PATHS)


def extract_field_names(body: str) -> List[str]:
    """Annotated attribute names at the first indentation level of a class body."""
    lines = [line for line in DOCSTRING.sub("", body).split("\n") if line.strip()]
    lines = [line for line in lines if not line.strip().startswith("#")]
    if not lines:
        return []

    indent = len(lines[0]) - len(lines[0].lstrip())
    fields = []
    for line in lines:
        if len(line) - len(line.lstrip()) != indent:
            continue
        match = FIELD_LINE.match(line.strip())
        if match and not keyword.iskeyword(match.group(1)):
            fields.append(match.group(1))
    return fields


def extract_interfaces_from_file(file_path: str) -> List[InterfaceInfo]:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Error reading file %s: %s", file_path, e)
        return []

    if not content.endswith("\n"):
        content += "\n"

    return [
        InterfaceInfo(
            name=match.group(1),
            file=file_path,
            relative_path=os.path.relpath(file_path),
            source=match.group(0).rstrip(),
            fields=extract_field_names(match.group(2)),
        )
        for match in CLASS_BLOCK.finditer(content)
    ]


def scan_directory(dir_path: str) -> List[str]:
    files = []
    for root, dirs, names in os.walk(dir_path):
        dirs[:] = sorted(d for d in dirs if not d.startswith(".") and d != "__pycache__")
        files.extend(os.path.join(root, n) for n in sorted(names) if n.endswith(".py"))
    return files


def expand_path(pattern: str) -> List[str]:
    if os.path.isfile(pattern):
        return [pattern]
    if os.path.isdir(pattern):
        return scan_directory(pattern)
    return []


def scan_for_interfaces(paths: Optional[List[str]] = None) -> InterfaceScanResult:
    interfaces: List[InterfaceInfo] = []
    scanned: List[str] = []
    try:
        for pattern in paths or default_scan_paths():
            for file_path in expand_path(pattern):
                if file_path in scanned:
                    continue
                scanned.append(file_path)
                interfaces.extend(extract_interfaces_from_file(file_path))
    except OSError as e:
        logger.error("Interface scan failed: %s", e)
        return InterfaceScanResult(files=scanned, error=str(e))

    interfaces.sort(key=lambda i: i.name.lower())
    return InterfaceScanResult(interfaces=interfaces, files=scanned)


def find_interface_by_name(result: InterfaceScanResult, name: str) -> Optional[InterfaceInfo]:
    return next((i for i in result.interfaces if i.name == name), None)


def get_interfaces_from_file(result: InterfaceScanResult, file_path: str) -> List[InterfaceInfo]:
    return [i for i in result.interfaces if file_path in (i.file, i.relative_path)]


def group_interfaces_by_file(result: InterfaceScanResult) -> Dict[str, List[InterfaceInfo]]:
    grouped: Dict[str, List[InterfaceInfo]] = defaultdict(list)
    for interface in result.interfaces:
        grouped[interface.relative_path].append(interface)
    return dict(grouped)
