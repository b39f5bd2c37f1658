#!/usr/bin/env python3
"""
Seed the database with sample users, tweets, follows and likes
"""
import asyncio
import random
import sys
from pathlib import Path

# Add the project root to the Python path
current_dir = Path(__file__).parent
root_dir = current_dir.parent
sys.path.insert(0, str(root_dir))

SAMPLE_PASSWORD = "Password123!"

SAMPLE_USERS = [
    ("Alice Johnson", "Software engineer and coffee lover"),
    ("Bob Smith", "Tech enthusiast | Photographer | Traveler"),
    ("Carol Davis", "Designer who codes"),
    ("David Wilson", "Full-stack developer building cool stuff"),
    ("Emma Brown", "Data scientist | ML enthusiast"),
    ("Frank Miller", "Product manager by day, gamer by night"),
    ("Grace Lee", "Open source contributor"),
    ("Henry Taylor", "DevOps engineer | Cloud enthusiast"),
]

SAMPLE_TWEETS = [
    "Just deployed my first FastAPI application! 🚀 #python #fastapi",
    "Beautiful sunset today 🌅 #photography",
    "Working on a new project. Excited to share it soon! #coding",
    "Coffee + Code = Perfect Morning ☕ #developer",
    "Async Python finally clicked for me today #python",
    "Just finished reading a great book on system design 📚",
    "Weekend hiking trip was amazing! 🏔️",
    "New blog post: Getting started with SQLAlchemy 2.0 #sqlalchemy",
    "Pair programming session was super productive today 👥",
    "Hot take: tests are documentation #testing",
]


async def seed_users(db) -> list:
    """Create verified sample users"""
    from datetime import date
    from xclone.models.user import User
    from xclone.services.auth_service import get_password_hash
    from xclone.services.user_service import UserService
    from sqlalchemy import select

    print(f"👤 Seeding {len(SAMPLE_USERS)} users...")

    hashed = get_password_hash(SAMPLE_PASSWORD)
    users = []
    for full_name, bio in SAMPLE_USERS:
        email = f"{full_name.split()[0].lower()}@example.com"
        existing = await db.execute(select(User).where(User.email == email))
        user = existing.scalar_one_or_none()
        if user is None:
            user = User(
                username=(await UserService(db).suggest_usernames(full_name, email, count=1))[0],
                email=email,
                full_name=full_name,
                hashed_password=hashed,
                bio=bio,
                birth_date=date(1995, 6, 15),
                is_verified=True,
            )
            db.add(user)
            await db.flush()
        users.append(user)

    print(f"✅ {len(users)} users ready")
    return users


async def seed_tweets(db, users: list, count: int) -> list:
    """Create random public tweets"""
    from xclone.models.tweet import Tweet

    print(f"📝 Seeding {count} tweets...")

    tweets = [
        Tweet(author_id=random.choice(users).id, content=random.choice(SAMPLE_TWEETS), media=[])
        for _ in range(count)
    ]
    db.add_all(tweets)
    await db.flush()

    print(f"✅ Created {len(tweets)} tweets")
    return tweets


async def seed_follows(db, users: list) -> None:
    """Each user follows a random subset of the others"""
    from xclone.models.follow import Follow
    from sqlalchemy import select

    print("👥 Seeding follow relationships...")

    existing = {
        (row.follower_id, row.following_id)
        for row in (await db.execute(select(Follow.follower_id, Follow.following_id))).all()
    }
    created = 0
    for user in users:
        others = [u for u in users if u.id != user.id]
        for target in random.sample(others, k=min(3, len(others))):
            if (user.id, target.id) in existing:
                continue
            db.add(Follow(follower_id=user.id, following_id=target.id))
            existing.add((user.id, target.id))
            created += 1
    await db.flush()

    print(f"✅ Created {created} follow relationships")


async def seed_likes(db, users: list, tweets: list) -> None:
    """Sprinkle likes over the seeded tweets"""
    from xclone.models.like import Like

    print("❤️  Seeding likes...")

    created = 0
    for tweet in tweets:
        for user in random.sample(users, k=random.randint(0, min(4, len(users)))):
            db.add(Like(user_id=user.id, tweet_id=tweet.id))
            created += 1
    await db.flush()

    print(f"✅ Created {created} likes")


async def seed_all(tweet_count: int) -> None:
    """Seed everything and bring the counters in line with the rows"""
    from xclone.db.session import AsyncSessionLocal, init_db, close_db
    from xclone.services.counter_service import reconcile_counters

    print("🌱 Starting database seeding...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            users = await seed_users(db)
            tweets = await seed_tweets(db, users, tweet_count)
            await seed_follows(db, users)
            await seed_likes(db, users, tweets)
            await reconcile_counters(db)
            await db.commit()
        except Exception as e:
            await db.rollback()
            print(f"❌ Error seeding data: {e}")
            raise
    await close_db()

    print("🎉 Database seeding completed!")
    print(f"   Sign in with any <firstname>@example.com / {SAMPLE_PASSWORD}")


async def clear_all_data(confirm: bool = False) -> None:
    """Delete all rows, keeping the tables"""
    if not confirm:
        print("⚠️  WARNING: This will delete ALL data from the database!")
        print("   Use --confirm flag to proceed")
        return

    from xclone.db.session import engine
    from xclone.models import Base

    print("🧹 Clearing all data...")

    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())
            print(f"  Cleared {table.name}")

    print("✅ All data cleared")


def main() -> None:
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Database Seeding")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    all_parser = subparsers.add_parser("all", help="Seed users, tweets, follows and likes")
    all_parser.add_argument("--tweets", type=int, default=30, help="Number of tweets to create")

    clear_parser = subparsers.add_parser("clear", help="Clear all data")
    clear_parser.add_argument("--confirm", action="store_true", help="Confirm clear")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "all":
            asyncio.run(seed_all(args.tweets))
        elif args.command == "clear":
            asyncio.run(clear_all_data(args.confirm))
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
