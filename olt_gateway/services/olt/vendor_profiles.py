"""
OLT Gateway - Perfiles de CLI por marca
Prompt, paginador y comandos de arranque de cada fabricante.

El registro es de solo lectura: la sesión recibe un VendorProfile ya resuelto
con lookup_vendor_profile(), sin estado global mutable.
"""
import re
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Optional, Pattern

# Prompt genérico: "hostname#" o "hostname>"
DEFAULT_PROMPT = re.compile(r"[\w\-\[\]()]+[#>]\s*$")

# "--More--", " --More-- ", "---- More ( Press 'Q' to quit ) ----"
DEFAULT_PAGER = re.compile(r"-{2,}\s*\(?\s*more\b[^\n]*$", re.IGNORECASE)

LOGIN_PROMPT = re.compile(r"(user\s*name|login)\s*:\s*$", re.IGNORECASE)
PASSWORD_PROMPT = re.compile(r"password\s*:\s*$", re.IGNORECASE)

DEFAULT_PAGER_DISABLE = "terminal length 0"


@dataclass(frozen=True)
class VendorProfile:
    """Cómo conversar con el CLI de una marca."""
    name: str
    prompt: Pattern
    pager: Pattern = DEFAULT_PAGER
    pager_disable_command: str = DEFAULT_PAGER_DISABLE
    continue_key: str = " "
    escalation_command: Optional[str] = None
    mode_entry_command: Optional[str] = None


# <HUAWEI>, [HUAWEI~], MA5608T#, MA5608T(config)#
_BRACKET_OR_HASH = re.compile(
    r"(<[\w\-]+>|\[[\w\-~]+\]|[\w\-]+(\([\w\-/.:]+\))?[#>])\s*$"
)
_HASH = re.compile(r"[\w\-]+(\([\w\-/.:]+\))?[#>]\s*$")

_PROFILES = {
    "huawei": VendorProfile(
        name="huawei",
        prompt=_BRACKET_OR_HASH,
        pager_disable_command="screen-length 0 temporary",
        escalation_command="enable",
    ),
    "zte": VendorProfile(
        name="zte",
        prompt=_BRACKET_OR_HASH,
        pager_disable_command="screen-length 0 temporary",
    ),
    "vsol": VendorProfile(
        name="vsol",
        prompt=_HASH,
        escalation_command="enable",
    ),
    "cdata": VendorProfile(
        name="cdata",
        prompt=_HASH,
        pager=re.compile(r"(-{2,}\s*\(?\s*more\b[^\n]*|press any key to continue[^\n]*)$",
                         re.IGNORECASE),
        escalation_command="enable",
        mode_entry_command="config",
    ),
    "cisco": VendorProfile(
        name="cisco",
        prompt=_HASH,
    ),
}

VENDOR_PROFILES = MappingProxyType(_PROFILES)

DEFAULT_PROFILE = VendorProfile(name="default", prompt=DEFAULT_PROMPT)


def lookup_vendor_profile(vendor: str, custom_prompt: Optional[Pattern] = None) -> VendorProfile:
    """
    Retorna el perfil de la marca. Marca desconocida → perfil genérico.
    Si se pasa custom_prompt, reemplaza el prompt del perfil.
    """
    profile = VENDOR_PROFILES.get((vendor or "").lower().strip(), DEFAULT_PROFILE)
    if custom_prompt is not None:
        profile = replace(profile, prompt=custom_prompt)
    return profile
