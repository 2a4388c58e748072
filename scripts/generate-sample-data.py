#!/usr/bin/env python3
"""
Icons Herald — Sample Data Generator
Generates realistic demo data aligned with the current database models:
users, nominations, profiles (draft and published) and payment attempts.

Usage:
    python scripts/generate-sample-data.py
    python scripts/generate-sample-data.py --nominations 80 --output sample-data.json
    python scripts/generate-sample-data.py --sql --output sample-data.sql

Generated users have no usable password (the hash field is a placeholder);
reset them through the admin console before logging in.
"""

import json
import random
import uuid
import argparse
from datetime import datetime, timedelta, timezone
from typing import Any


# ── Configuration ───────────────────────────────────────────

TIERS = ["emerging", "accomplished", "distinguished", "legacy"]
TIER_PRICING = {"emerging": 250000, "accomplished": 500000, "distinguished": 1200000, "legacy": 5000000}
NOMINATION_STATUSES = ["pending", "pending", "pending", "approved", "approved", "rejected", "flagged"]
PAYMENT_OUTCOMES = ["captured", "captured", "captured", "failed", "created"]

FIRST_NAMES = ["Asha", "Ravi", "Meera", "Kabir", "Zara", "Arjun", "Nisha", "Vikram", "Ananya", "Dev",
               "Ishaan", "Kavya", "Rohan", "Tara", "Aditi", "Neel", "Priya", "Sahil", "Leela", "Omar"]
LAST_NAMES = ["Rao", "Menon", "Das", "Khan", "Iyer", "Shah", "Kapoor", "Nair", "Bose", "Gupta",
              "Reddy", "Singh", "Pillai", "Joshi", "Chatterjee", "Verma", "Fernandes", "Ali", "Mehta", "Sen"]
FIELDS = ["clean water", "rural education", "solar cooperatives", "classical music", "public health",
          "open-source software", "women's football", "wildlife conservation", "microfinance", "urban design"]
CITIES = ["Pune", "Kochi", "Jaipur", "Bengaluru", "Kolkata", "Chennai", "Lucknow", "Guwahati", "Indore", "Goa"]
DOMAIN = "example.com"

# Table -> columns, in insert order (enum columns hold member names)
SQL_TABLES = {
    "users": ["id", "email", "full_name", "password_hash", "role", "status", "tier",
              "must_reset_password", "created_at", "updated_at"],
    "nominations": ["id", "nominator_name", "nominator_email", "nominee_name", "nominee_email", "pitch",
                    "desired_tier", "links", "status", "assigned_tier", "admin_notes", "flag_reason",
                    "reviewed_by", "reviewed_at", "nominee_user_id", "created_at", "updated_at"],
    "profiles": ["id", "user_id", "tier", "status", "slug", "content", "theme_settings", "template",
                 "meta_title", "meta_description", "payment_status", "published_at", "view_count",
                 "created_at", "updated_at"],
    "payments": ["id", "profile_id", "user_id", "tier", "amount", "currency", "status", "gateway_order_id",
                 "gateway_payment_id", "failure_reason", "created_at", "updated_at"],
}
ENUM_COLUMNS = {"role", "status", "tier", "desired_tier", "assigned_tier", "payment_status"}


class SampleDataGenerator:
    """Generates realistic sample data for Icons Herald."""

    def __init__(self, seed: int = 42):
        random.seed(seed)
        self.seed = seed
        self.now = datetime.now(timezone.utc)
        self._slugs = set()

    def _uuid(self) -> str:
        return str(uuid.uuid4())

    def _past_date(self, max_days: int = 365) -> str:
        delta = timedelta(days=random.randint(0, max_days), hours=random.randint(0, 23))
        return (self.now - delta).isoformat()

    def _person(self) -> tuple:
        return random.choice(FIRST_NAMES), random.choice(LAST_NAMES)

    def _slug(self, name: str) -> str:
        base = name.lower().replace(" ", "-")
        slug, suffix = base, 1
        while slug in self._slugs:
            suffix += 1
            slug = f"{base}-{suffix}"
        self._slugs.add(slug)
        return slug

    # ── Generators ──────────────────────────────────────────

    def generate_staff(self) -> list:
        now = self.now.isoformat()
        return [
            {
                "id": self._uuid(),
                "email": f"{role.replace('_', '')}@{DOMAIN}",
                "full_name": f"Demo {role.replace('_', ' ').title()}",
                "password_hash": "!",
                "role": role,
                "status": "active",
                "tier": None,
                "must_reset_password": True,
                "created_at": now,
                "updated_at": now,
            }
            for role in ("super_admin", "admin")
        ]

    def generate_nomination(self, index: int, reviewer_id: str) -> dict:
        first, last = self._person()
        nominator_first, nominator_last = self._person()
        field = random.choice(FIELDS)
        status = random.choice(NOMINATION_STATUSES)
        created = self._past_date(120)
        reviewed = status != "pending"
        desired = random.choice(TIERS)
        return {
            "id": self._uuid(),
            "nominator_name": f"{nominator_first} {nominator_last}",
            "nominator_email": f"{nominator_first.lower()}.{nominator_last.lower()}{index}@{DOMAIN}",
            "nominee_name": f"{first} {last}",
            "nominee_email": f"{first.lower()}.{last.lower()}{index}@{DOMAIN}",
            "pitch": f"{first} has spent over a decade advancing {field} in {random.choice(CITIES)}.",
            "desired_tier": desired,
            "links": [f"https://{first.lower()}{last.lower()}.{DOMAIN}"],
            "status": status,
            "assigned_tier": desired if status == "approved" else None,
            "admin_notes": {"rejected": "Not enough public evidence", "flagged": "Verify press links"}.get(status),
            "flag_reason": "Verify press links" if status == "flagged" else None,
            "reviewed_by": reviewer_id if reviewed else None,
            "reviewed_at": self._past_date(30) if reviewed else None,
            "nominee_user_id": None,
            "created_at": created,
            "updated_at": created,
        }

    def generate_nominee_user(self, nomination: dict) -> dict:
        return {
            "id": self._uuid(),
            "email": nomination["nominee_email"],
            "full_name": nomination["nominee_name"],
            "password_hash": "!",
            "role": "applicant",
            "status": "active",
            "tier": nomination["assigned_tier"],
            "must_reset_password": True,
            "created_at": nomination["reviewed_at"],
            "updated_at": nomination["reviewed_at"],
        }

    def generate_content(self, name: str, tier: str) -> dict:
        field = random.choice(FIELDS)
        content = {
            "name": name,
            "tagline": f"Championing {field}",
            "location": f"{random.choice(CITIES)}, India",
            "heroImage": f"https://cdn.{DOMAIN}/{name.lower().replace(' ', '-')}.jpg",
            "bio": {"original": f"{name} works on {field}.", "ai_polished": None},
            "achievements": [
                {"id": f"achievements-{i}", "order": i, "title": f"Award {i + 1}",
                 "year": str(2015 + i), "isVisible": True}
                for i in range(random.randint(1, 4))
            ],
            "links": [{"id": "links-0", "order": 0, "label": "Website",
                       "url": f"https://{DOMAIN}/{name.lower().replace(' ', '')}", "isVisible": True}],
        }
        if tier == "legacy":
            content["era"] = f"{random.randint(1920, 1950)}-{random.randint(1990, 2020)}"
            content["enduringContributions"] = {"original": f"Shaped {field} for generations."}
            content["timeline"] = [{"id": "timeline-0", "order": 0, "year": "1970", "title": "First breakthrough"}]
            content["tributes"] = [{"id": "tributes-0", "order": 0, "author": "A former student",
                                    "message": "An inspiration to us all."}]
        else:
            content["currentRole"] = f"Founder, {name.split()[-1]} Foundation"
        if tier == "emerging":
            content["futureVision"] = {"original": f"Scale {field} nationwide."}
            content["milestones"] = [{"id": "milestones-0", "order": 0, "title": "First pilot", "year": "2021"}]
        if tier in ("accomplished", "distinguished"):
            content["impactMetrics"] = [{"id": "impactMetrics-0", "order": 0, "label": "Lives reached",
                                         "value": f"{random.randint(1, 90)}k"}]
        if tier == "accomplished":
            content["leadershipHighlights"] = [{"id": "leadershipHighlights-0", "order": 0,
                                                "title": "Board member, national council"}]
        if tier == "distinguished":
            content["featuredPress"] = [{"id": "featuredPress-0", "order": 0, "outlet": "The Daily",
                                         "url": f"https://press.{DOMAIN}/story"}]
            content["gallery"] = [{"id": "gallery-0", "order": 0, "url": f"https://cdn.{DOMAIN}/g0.jpg"}]
        return content

    def generate_profile(self, user: dict) -> dict:
        name, tier = user["full_name"], user["tier"]
        created = user["created_at"]
        return {
            "id": self._uuid(),
            "user_id": user["id"],
            "tier": tier,
            "status": "draft",
            "slug": self._slug(name),
            "content": self.generate_content(name, tier),
            "theme_settings": {},
            "template": tier,
            "meta_title": name,
            "meta_description": None,
            "payment_status": "pending",
            "published_at": None,
            "view_count": 0,
            "created_at": created,
            "updated_at": created,
        }

    def generate_payment(self, profile: dict, user: dict) -> dict:
        outcome = random.choice(PAYMENT_OUTCOMES)
        created = self._past_date(20)
        payment = {
            "id": self._uuid(),
            "profile_id": profile["id"],
            "user_id": user["id"],
            "tier": profile["tier"],
            "amount": TIER_PRICING[profile["tier"]],
            "currency": "INR",
            "status": outcome,
            "gateway_order_id": f"order_demo_{uuid.uuid4().hex[:14]}",
            "gateway_payment_id": f"pay_demo_{uuid.uuid4().hex[:14]}" if outcome != "created" else None,
            "failure_reason": "Card declined" if outcome == "failed" else None,
            "created_at": created,
            "updated_at": created,
        }
        if outcome == "captured":
            profile.update(status="published", payment_status="completed", published_at=created,
                           view_count=random.randint(0, 5000))
            user["role"] = "member"
        return payment

    # ── Main Generator ──────────────────────────────────────

    def generate_all(self, nominations: int = 40) -> dict[str, Any]:
        staff = self.generate_staff()
        reviewer_id = staff[1]["id"]
        noms = [self.generate_nomination(i, reviewer_id) for i in range(nominations)]

        nominees, profiles, payments = [], [], []
        for nomination in noms:
            if nomination["status"] != "approved":
                continue
            user = self.generate_nominee_user(nomination)
            nomination["nominee_user_id"] = user["id"]
            nominees.append(user)
            if random.random() < 0.3:
                continue
            profile = self.generate_profile(user)
            profiles.append(profile)
            if random.random() < 0.7:
                payments.append(self.generate_payment(profile, user))

        return {
            "generated_at": self.now.isoformat(),
            "generator": "Icons Herald Sample Data Generator v1.0",
            "seed": self.seed,
            "counts": {
                "users": len(staff) + len(nominees),
                "nominations": len(noms),
                "profiles": len(profiles),
                "payments": len(payments),
            },
            "data": {
                "users": staff + nominees,
                "nominations": noms,
                "profiles": profiles,
                "payments": payments,
            },
        }


# ── SQL output ──────────────────────────────────────────────

def _sql_literal(column: str, value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (dict, list)):
        value = json.dumps(value)
    elif column in ENUM_COLUMNS:
        value = value.upper()
    return "'" + str(value).replace("'", "''") + "'"


def to_sql(data: dict) -> str:
    lines = [f"-- {data['generator']} ({data['generated_at']})", "BEGIN;"]
    for table, columns in SQL_TABLES.items():
        for row in data["data"][table]:
            values = ", ".join(_sql_literal(c, row[c]) for c in columns)
            lines.append(f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({values});")
    lines.append("COMMIT;")
    return "\n".join(lines) + "\n"


# ── CLI ─────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Icons Herald Sample Data Generator")
    parser.add_argument("--nominations", type=int, default=40, help="Number of nominations")
    parser.add_argument("--output", type=str, default=None, help="Output file")
    parser.add_argument("--sql", action="store_true", help="Emit SQL INSERT statements instead of JSON")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    generator = SampleDataGenerator(seed=args.seed)
    data = generator.generate_all(args.nominations)
    output = args.output or ("sample-data.sql" if args.sql else "sample-data.json")

    with open(output, "w") as f:
        if args.sql:
            f.write(to_sql(data))
        else:
            json.dump(data, f, indent=2, default=str)

    counts = data["counts"]
    print(f"Sample data generated: {output}")
    print(f"   Users: {counts['users']}")
    print(f"   Nominations: {counts['nominations']}")
    print(f"   Profiles: {counts['profiles']}")
    print(f"   Payments: {counts['payments']}")
    print(f"   Total Records: {sum(counts.values())}")


if __name__ == "__main__":
    main()
