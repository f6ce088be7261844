#!/usr/bin/env python3
"""Load seed feeds into the database. Idempotent."""

import json
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from feedhub import create_app
from feedhub.extensions import db
from feedhub.models import Feed


def seed_feeds(filepath):
    """Load feeds from JSON. Skip existing by URL."""
    with open(filepath, encoding='utf-8') as f:
        feeds = json.load(f)

    added = 0
    skipped = 0
    for item in feeds:
        existing = Feed.query.filter_by(feed_url=item['feed_url']).first()
        if existing:
            skipped += 1
            continue

        feed = Feed(
            name=item['name'],
            feed_url=item['feed_url'],
            feed_type=item.get('feed_type', 'RSS2'),
            journal_name=item.get('journal_name'),
            sync_interval_min=item.get('sync_interval_min', 60),
        )
        db.session.add(feed)
        added += 1

    db.session.commit()
    print(f"Feeds: {added} added, {skipped} skipped (already exist)")
    return added


if __name__ == '__main__':
    app = create_app()
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    with app.app_context():
        print("Seeding database...")
        seed_feeds(os.path.join(project_root, 'seed_feeds.json'))
        print("Done.")
