"""
Canned fallback dataset.

Used in place of live extraction when no provider is configured or a
live source fails, so callers always get well-formed records. Close
dates are relative to the reference time so urgency logic stays
meaningful.
"""

from datetime import datetime, timedelta
from typing import Optional

from grants_extractor.core.models import GrantRecord, new_record_id, utc_now

VIEW_URL = "https://grants.gov/web/grants/view-opportunity.html?oppId={opp_id}"

# (opportunity number, title, agency, category, floor, ceiling, days open, opp id, description)
CATALOG = [
    (
        "CDC-RFA-DP23-2301",
        "Strengthening Public Health Systems and Services through National Partnerships",
        "Department of Health and Human Services", "Health", 100000, 500000, 75, "123456",
        "This funding opportunity aims to strengthen public health systems and services "
        "through national partnerships, improving health outcomes and reducing health disparities.",
    ),
    (
        "NSF-24-542",
        "Computer and Information Science and Engineering Research Initiation Initiative",
        "National Science Foundation", "Science and Technology", 75000, 175000, 45, "234567",
        "This program supports early-career faculty in computer and information science and "
        "engineering fields, building research capacity in emerging areas of computing.",
    ),
    (
        "ED-GRANTS-041524-001",
        "Supporting Effective Educator Development Grant Program",
        "Department of Education", "Education", 250000, 1000000, 60, "345678",
        "This program provides funding to improve the quality of new teachers and principals "
        "through innovative preparation programs, mentoring, and professional development.",
    ),
    (
        "USDA-NIFA-AFRI-009876",
        "Agriculture and Food Research Initiative: Sustainable Agricultural Systems",
        "Department of Agriculture", "Agriculture", 150000, 750000, 30, "456789",
        "This program supports research on sustainable agricultural systems, including climate "
        "adaptation, soil health, and integrated pest management.",
    ),
    (
        "EPA-G2024-STAR-A1",
        "Science to Achieve Results (STAR) Research Program",
        "Environmental Protection Agency", "Environment", 100000, 400000, 90, "567890",
        "The STAR program supports high-quality environmental research on air quality, water "
        "resources, and environmental health.",
    ),
    (
        "NIH-R01-MH-24-100",
        "Mental Health Research Grant Program",
        "National Institutes of Health", "Health", 500000, 2500000, 21, "678901",
        "This program supports innovative research to advance understanding of mental health "
        "disorders and develop new treatments.",
    ),
    (
        "DOE-SC-0024-001",
        "Basic Energy Sciences Research Program",
        "Department of Energy", "Energy", 300000, 1200000, 120, "789012",
        "This program supports fundamental research in materials, chemical, and geosciences "
        "that underpin the energy mission.",
    ),
    (
        "HUD-CPD-2024-CDBG",
        "Community Development Block Grant Program",
        "Department of Housing and Urban Development", "Community Development", 500000, 2000000, 80, "890123",
        "The CDBG program provides communities with resources to address a wide range of "
        "community development needs benefiting low- and moderate-income persons.",
    ),
    (
        "URGENT-GRANT-001",
        "Emergency Community Response Initiative",
        "Department of Homeland Security", "Emergency Management", 50000, 300000, 3, "901234",
        "Urgent funding opportunity to support community emergency response capabilities.",
    ),
    (
        "WARNING-GRANT-002",
        "Infrastructure Resilience Program",
        "Department of Transportation", "Infrastructure", 200000, 800000, 10, "012345",
        "Funding to improve infrastructure resilience against climate change impacts.",
    ),
]

# Returned by the listing search when the live source fails
SEARCH_FALLBACK = [
    (
        "NSF-25-AI-001",
        "Artificial Intelligence Research Institutes",
        "National Science Foundation", "Science and Technology", 5000000, 20000000, 60, "AI001",
        "The National Science Foundation seeks to establish AI Research Institutes that will "
        "accelerate research and development in artificial intelligence and machine learning.",
    ),
    (
        "DARPA-25-AI-002",
        "Next Generation Artificial Intelligence",
        "Department of Defense", "Defense", 2000000, 15000000, 45, "AI002",
        "DARPA seeks innovative approaches to develop next-generation AI systems that can "
        "operate in complex, dynamic environments with minimal human oversight.",
    ),
]


def _build(entries: list[tuple], now: datetime) -> list[GrantRecord]:
    records = []
    for number, title, agency, category, floor, ceiling, days_open, opp_id, description in entries:
        records.append(GrantRecord(
            id=new_record_id(),
            opportunity_number=number,
            title=title,
            agency=agency,
            description=description,
            posted_date=(now - timedelta(days=30)).isoformat(),
            close_date=(now.date() + timedelta(days=days_open)).isoformat(),
            award_floor=floor,
            award_ceiling=ceiling,
            category=category,
            status="Open",
            details_url=VIEW_URL.format(opp_id=opp_id),
        ))
    return records


def fallback_catalog(now: Optional[datetime] = None) -> list[GrantRecord]:
    """Canned catalog used when the feed cannot be read."""
    return _build(CATALOG, now or utc_now())


def fallback_search(
    query: str = "",
    limit: int = 50,
    now: Optional[datetime] = None,
) -> list[GrantRecord]:
    """
    Canned search results.

    Catalog entries matching the query (title, description, agency or
    category) come first; the generic search set is returned when none
    match.

    Args:
        query: Search text (empty matches everything)
        limit: Result cap
        now: Reference time

    Returns:
        List of GrantRecord
    """
    now = now or utc_now()
    query_lower = (query or "").lower().strip()

    matches = [
        record for record in fallback_catalog(now)
        if not query_lower
        or query_lower in record.title.lower()
        or query_lower in record.description.lower()
        or query_lower in record.agency.lower()
        or query_lower in (record.category or "").lower()
    ]
    if not matches:
        matches = _build(SEARCH_FALLBACK, now)
    return matches[:limit]
