"""adapterd.bt_ref.lookup – name lookups for identifiers reported by controllers.

* Company identifiers (controller / remote manufacturer ids) from the bundled
  ``company_identifiers.yaml``.
* LMP version numbers to Bluetooth core specification versions.
* IEEE OUI prefixes to vendor names from the system ``oui.txt`` database.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml

from adapterd.core import config
from adapterd.core.log import get_logger

logger = get_logger(__name__)

__all__ = [
    "compid_to_str",
    "lmp_version_to_str",
    "address_to_oui",
    "oui_to_company",
]

_COMPANY_FILE = Path(__file__).parent / "company_identifiers.yaml"

# LMP Version to Bluetooth Core Specification mapping
_LMP_VERSION_MAP: Dict[int, str] = {
    0: "1.0b",
    1: "1.1",
    2: "1.2",
    3: "2.0",
    4: "2.1",
    5: "3.0",
    6: "4.0",
    7: "4.1",
    8: "4.2",
    9: "5.0",
    10: "5.1",
    11: "5.2",
    12: "5.3",
    13: "5.4",
    14: "6.0",
}


@lru_cache(maxsize=1)
def _company_table() -> Dict[int, str]:
    try:
        with open(_COMPANY_FILE, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Cannot load company identifiers: {e}")
        return {}
    return {
        int(entry["value"]): str(entry["name"])
        for entry in data.get("company_identifiers", [])
    }


def compid_to_str(compid: int) -> str:
    """Return the company name for a Bluetooth SIG company identifier."""
    name = _company_table().get(compid)
    if name is not None:
        return name
    if compid == 65535:
        return "internal use"
    return "not assigned"


def lmp_version_to_str(version: int) -> str:
    return _LMP_VERSION_MAP.get(version, "unknown")


def address_to_oui(address: str) -> str:
    """``00:0A:95:9D:68:16`` -> ``00-0A-95``."""
    parts = address.strip().upper().split(":")
    if len(parts) != 6:
        raise ValueError(f"Invalid Bluetooth address: {address!r}")
    return "-".join(parts[:3])


def _oui_files(paths: Optional[Iterable[Path]]) -> Iterable[Path]:
    return [Path(p) for p in (config.OUI_PATHS if paths is None else paths)]


def oui_to_company(oui: str, paths: Optional[Iterable[Path]] = None) -> Optional[str]:
    """Look up *oui* (``XX-XX-XX``) in the first readable vendor database.

    Lines of interest have the form ``00-0A-95   (hex)\\t\\tApple, Inc.``.
    Returns ``None`` when no database is available or the prefix is unknown.
    """
    oui = oui.upper()
    for path in _oui_files(paths):
        if not path.is_file():
            continue
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    if "(hex)" not in line:
                        continue
                    prefix, _, rest = line.partition("(hex)")
                    if prefix.strip().upper() == oui:
                        return rest.strip()
        except OSError as e:
            logger.warning(f"Cannot read vendor database {path}: {e}")
            continue
        return None
    return None
