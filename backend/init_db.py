"""Create the chat database schema and optionally purge old conversations."""
import argparse
import sys
from datetime import datetime, timedelta
from sqlalchemy.exc import SQLAlchemyError

from supportbot.config import get_settings
from supportbot.database import Database
from supportbot.models import Conversation, Message
from supportbot.services.conversations import ConversationService


def init_database(purge_days: int = 0):
    """Create tables, purge conversations idle for `purge_days` days, print counts."""
    settings = get_settings()
    database = Database(settings.database_url)

    print("Creating database tables...")
    database.create_all()

    try:
        with database.session() as db:
            if purge_days > 0:
                cutoff = datetime.utcnow() - timedelta(days=purge_days)
                purged = ConversationService(db).purge_older_than(cutoff)
                print(f"✓ Purged {purged} conversations idle since {cutoff:%Y-%m-%d}")

            conversations = db.query(Conversation).count()
            messages = db.query(Message).count()

        print("\n" + "="*50)
        print("✓ Database ready")
        print("="*50)
        print(f"\nConversations: {conversations}")
        print(f"Messages:      {messages}")

    except SQLAlchemyError as e:
        print(f"✗ Error initializing database: {e}")
        sys.exit(1)
    finally:
        database.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--purge-days",
        type=int,
        default=get_settings().conversation_retention_days,
        help="Delete conversations idle for this many days (0 disables)"
    )
    args = parser.parse_args()
    init_database(args.purge_days)
