"""
Seed the configured database with the badge catalog and optional demo tasks.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from taskverse.config import get_settings
from taskverse.db import ProfileRecord, Role, SqlDbClient, TaskFilters, TaskRecord
from taskverse.services import ensure_badge_catalog, normalize_skills, today

logger = logging.getLogger(__name__)

DEMO_BUSINESSES = [
    {"id": "demo-techstart", "name": "TechStart Inc.", "industry": "Software"},
    {"id": "demo-stylehub", "name": "StyleHub", "industry": "E-commerce"},
    {"id": "demo-fitlife", "name": "FitLife Studio", "industry": "Fitness"},
]

DEMO_TASKS = [
    {
        "business_id": "demo-techstart",
        "title": "Design a Social Media Banner",
        "description": (
            "Create an eye-catching banner for our upcoming product launch on "
            "Instagram and Facebook. Dimensions: 1200x630px."
        ),
        "category": "Design",
        "difficulty": "Beginner",
        "points": 50,
        "duration": "2-3 hours",
        "skills": "Graphic Design, Canva, Adobe Photoshop",
    },
    {
        "business_id": "demo-techstart",
        "title": "Data Entry and Cleaning",
        "description": (
            "Clean and organize 500 customer records in our database. Remove "
            "duplicates and standardize formatting."
        ),
        "category": "Data Entry",
        "difficulty": "Beginner",
        "points": 40,
        "duration": "2-3 hours",
        "skills": "Excel, Data Entry, Attention to Detail",
    },
    {
        "business_id": "demo-stylehub",
        "title": "Write Product Descriptions",
        "description": (
            "Write compelling product descriptions for 10 items in our "
            "e-commerce catalog. Each description should be 50-100 words."
        ),
        "category": "Content Writing",
        "difficulty": "Beginner",
        "points": 75,
        "duration": "3-4 hours",
        "skills": "Copywriting, SEO, Content Strategy",
    },
    {
        "business_id": "demo-fitlife",
        "title": "UI/UX Design for Mobile App",
        "description": (
            "Design 5 key screens for a fitness tracking mobile app. Provide "
            "Figma file with interactive prototype."
        ),
        "category": "Design",
        "difficulty": "Advanced",
        "points": 200,
        "duration": "8-10 hours",
        "skills": "UI/UX Design, Figma, Mobile Design",
    },
]


def seed_demo_tasks(db) -> int:
    created = 0
    for business in DEMO_BUSINESSES:
        if not db.get_profile(business["id"]):
            db.create_profile(
                ProfileRecord(
                    id=business["id"],
                    email=f"{business['id']}@example.com",
                    name=business["name"],
                    role=Role.BUSINESS.value,
                    business_name=business["name"],
                    industry=business["industry"],
                )
            )
    for task in DEMO_TASKS:
        existing = {
            t.title for t in db.list_tasks(TaskFilters(business_id=task["business_id"]))
        }
        if task["title"] in existing:
            continue
        db.create_task(
            TaskRecord(
                **{**task, "skills": normalize_skills(task["skills"])},
                posted_date=today(),
            )
        )
        created += 1
    return created


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed TaskVerse demo data")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override DATABASE_URL",
    )
    parser.add_argument(
        "--with-demo-tasks",
        action="store_true",
        help="Also create demo businesses and open tasks",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    database_url = args.database_url or get_settings().database_url
    if not database_url:
        logger.error("No database configured; set DATABASE_URL or pass --database-url")
        return 1

    db = SqlDbClient(database_url)
    added = ensure_badge_catalog(db)
    logger.info("Badge catalog ready (%d added)", added)

    if args.with_demo_tasks:
        created = seed_demo_tasks(db)
        logger.info("Created %d demo tasks", created)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
