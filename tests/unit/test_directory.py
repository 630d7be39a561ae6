from __future__ import annotations

import random
from decimal import Decimal

import pytest

from batchflow.domain.directory import (
    COMPANIES_BY_REGION,
    REGIONS,
    currency_info,
    industry_for,
    pick_company,
)


@pytest.mark.parametrize(
    "region, currency, formatted",
    [
        ("US", "USD", "$64.50"),
        ("AU", "AUD", "A$64.50"),
        ("UK", "GBP", "£64.50"),
    ],
)
def test_currency_info_by_region(region, currency, formatted):
    info = currency_info(region, Decimal("64.5"))

    assert info == {"currency": currency, "amount": "64.50", "formatted_amount": formatted}


def test_unknown_region_falls_back_to_usd():
    assert currency_info("NZ", Decimal("1"))["formatted_amount"] == "$1.00"


def test_pick_company_returns_company_from_its_region():
    rng = random.Random(3)
    for _ in range(50):
        company, region = pick_company(rng)
        assert region in REGIONS
        assert company in COMPANIES_BY_REGION[region]


@pytest.mark.parametrize(
    "company, industry",
    [
        ("Verizon Communications", "telecom"),
        ("Kinder Morgan", "energy"),
        ("Allstate Corporation", "insurance"),
        ("Acme Widgets", "business"),
        (None, "unknown"),
    ],
)
def test_industry_for(company, industry):
    assert industry_for(company) == industry
