"""
Regional company directory and the synthetic business fields derived from it.

Each region has a fixed roster spanning telecom, energy and insurance. The
region also determines the currency and the formatted amount prefix.
"""
from __future__ import annotations

import random
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

COMPANIES_BY_REGION: Dict[str, List[str]] = {
    "US": [
        "Verizon Communications", "AT&T Inc", "T-Mobile US", "Comcast Corporation",
        "Charter Communications", "Sprint Corporation", "CenturyLink",
        "Kinder Morgan", "Enterprise Products Partners", "Enbridge Inc",
        "TC Energy", "Williams Companies", "Oneok Inc", "Sempra Energy",
        "Berkshire Hathaway", "Progressive Corporation", "Allstate Corporation",
        "Travelers Companies", "Liberty Mutual", "Farmers Insurance", "USAA",
    ],
    "AU": [
        "Telstra Corporation", "Optus", "Vodafone Australia", "TPG Telecom",
        "iiNet", "Aussie Broadband", "Southern Phone",
        "AGL Energy", "Origin Energy", "EnergyAustralia", "Alinta Energy",
        "Red Energy", "Simply Energy", "Powershop Australia",
        "Suncorp Group", "IAG Group",
        "QBE Insurance", "Allianz Australia", "NRMA Insurance", "RACV",
    ],
    "UK": [
        "BT Group", "Vodafone UK", "EE Limited", "Three UK", "O2 UK",
        "Sky UK", "Virgin Media", "TalkTalk", "Plusnet",
        "British Gas", "E.ON UK", "EDF Energy", "Scottish Power",
        "npower", "SSE", "Bulb Energy", "Octopus Energy",
        "Aviva", "Legal & General", "Admiral Group", "Direct Line Group",
        "RSA Insurance", "Hastings Group", "LV= General Insurance",
    ],
}

REGIONS: Tuple[str, ...] = tuple(COMPANIES_BY_REGION)

# region -> (currency code, display prefix)
CURRENCY_BY_REGION: Dict[str, Tuple[str, str]] = {
    "US": ("USD", "$"),
    "AU": ("AUD", "A$"),
    "UK": ("GBP", "£"),
}

_INDUSTRY_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    (
        "telecom",
        (
            "telecom", "mobile", "verizon", "at&t", "t-mobile", "comcast", "telstra",
            "optus", "vodafone", "bt group", "ee limited", "o2 uk", "sky uk",
            "virgin media", "sprint", "charter",
        ),
    ),
    (
        "energy",
        (
            "gas", "energy", "kinder morgan", "enterprise products", "enbridge",
            "williams", "agl energy", "origin energy", "british gas", "e.on",
            "edf energy", "scottish power", "sse", "bulb", "octopus", "sempra",
        ),
    ),
    (
        "insurance",
        (
            "insurance", "berkshire hathaway", "progressive", "allstate", "travelers",
            "liberty mutual", "farmers", "usaa", "suncorp", "iag group", "qbe",
            "allianz", "nrma", "racv", "aviva", "legal & general", "admiral",
            "direct line", "rsa insurance", "hastings", "lv=",
        ),
    ),
]


def pick_company(rng: Optional[random.Random] = None) -> Tuple[str, str]:
    """Draw a (company, region) pair: uniform region, then uniform company."""
    rng = rng or random
    region = rng.choice(REGIONS)
    return rng.choice(COMPANIES_BY_REGION[region]), region


def format_amount(amount: Union[Decimal, float]) -> str:
    return f"{amount:.2f}"


def currency_info(region: str, amount: Union[Decimal, float]) -> Dict[str, str]:
    """
    Currency code, plain amount and formatted amount for ``region``.

    Unknown regions fall back to USD.
    """
    currency, symbol = CURRENCY_BY_REGION.get(region, CURRENCY_BY_REGION["US"])
    plain = format_amount(amount)
    return {
        "currency": currency,
        "amount": plain,
        "formatted_amount": f"{symbol}{plain}",
    }


def industry_for(company: Optional[str]) -> str:
    """Keyword classification of a company name; ``business`` when nothing matches."""
    if company is None:
        return "unknown"
    lowered = company.lower()
    for industry, keywords in _INDUSTRY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return industry
    return "business"


__all__ = [
    "COMPANIES_BY_REGION",
    "CURRENCY_BY_REGION",
    "REGIONS",
    "currency_info",
    "format_amount",
    "industry_for",
    "pick_company",
]
