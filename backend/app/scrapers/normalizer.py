"""Offer de-duplication and normalization into CouponRecords."""

from typing import Dict, Iterable, List, Tuple

from app.scrapers.base import CouponRecord, RawOffer, is_real_code


def normalize(domain: str, offers: Iterable[RawOffer]) -> List[CouponRecord]:
    """Turn resolved offers into unique, persistable coupon records.

    Offers whose code is still the sentinel (or blank) are dropped. When the
    same code appears more than once, a verified offer beats an unverified
    one; between offers with the same verified flag the first one seen wins.

    Args:
        domain: Merchant domain the offers were scraped for
        offers: Offers after code resolution

    Returns:
        One CouponRecord per (domain, code), in first-seen order
    """
    records: Dict[Tuple[str, str], CouponRecord] = {}
    for offer in offers:
        if not is_real_code(offer.direct_code):
            continue
        record = CouponRecord(
            domain=domain,
            code=offer.code,
            discount=offer.discount,
            terms=offer.terms,
            verified=offer.verified,
        )
        existing = records.get(record.key)
        if existing is None or (record.verified and not existing.verified):
            records[record.key] = record
    return list(records.values())
