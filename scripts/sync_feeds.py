#!/usr/bin/env python3
"""Sync all stale feeds once, or a single feed when its id is given."""

import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from feedhub import create_app
from feedhub.pipeline.sync import FeedSyncService, FeedSyncError
from feedhub.services.registry import get_services

if __name__ == '__main__':
    app = create_app()

    with app.app_context():
        service = FeedSyncService(get_services(), app.config)

        if len(sys.argv) > 1:
            feed_id = int(sys.argv[1])
            print(f"Syncing feed {feed_id}...")
            try:
                added = service.sync_feed(feed_id)
            except FeedSyncError as e:
                print(f"Sync failed: {e}")
                sys.exit(1)
            print(f"Sync complete: {added} new articles")
        else:
            print("Syncing stale feeds...")
            try:
                result = service.sync_all_active_feeds()
            except FeedSyncError as e:
                print(f"Sync failed: {e}")
                sys.exit(1)
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            if result.errors:
                sys.exit(1)
