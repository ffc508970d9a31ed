"""
Database migration runner for the leaderboard service.

Applies the PostgreSQL migrations (trader tables and the ranked
materialized view) in filename order. Every migration is written to
be re-runnable, so the runner keeps no applied-version table.
"""

import argparse
import asyncio
import os
from pathlib import Path
from typing import Any, Dict, List

import structlog

from leaderboard.storage.postgres import PostgresClient, PostgresConfig
from leaderboard.utils.logging import setup_logging


logger = structlog.get_logger()

DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations" / "postgres"


class MigrationRunner:
    """PostgreSQL migration runner."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres
        self.logger = structlog.get_logger("migration-runner")

    @staticmethod
    def migration_files(migration_dir: str) -> List[Path]:
        return sorted(Path(migration_dir).glob("*.sql"))

    async def run_migrations(self, migration_dir: str) -> int:
        """Run every migration in migration_dir. Returns the number applied."""
        migration_path = Path(migration_dir)

        if not migration_path.exists():
            self.logger.error("Migration directory not found", path=migration_dir)
            return 0

        migration_files = self.migration_files(migration_dir)
        if not migration_files:
            self.logger.warning("No migration files found", path=migration_dir)
            return 0

        self.logger.info("Starting migrations", count=len(migration_files))
        for migration_file in migration_files:
            await self._run_migration(migration_file)

        self.logger.info("All migrations completed successfully")
        return len(migration_files)

    async def _run_migration(self, migration_file: Path) -> None:
        """Run a single migration file."""
        self.logger.info("Running migration", file=migration_file.name)

        try:
            migration_sql = migration_file.read_text()
            # Simple-query protocol: one file may hold several statements
            await self.postgres.execute_command(migration_sql)
            self.logger.info("Migration completed", file=migration_file.name)

        except Exception as e:
            self.logger.error(
                "Migration failed",
                file=migration_file.name,
                error=str(e),
                exc_info=True
            )
            raise

    async def check_status(self) -> Dict[str, Any]:
        """Check which leaderboard relations exist."""
        status: Dict[str, Any] = {"connected": False, "tables": [], "views": []}
        try:
            tables = await self.postgres.execute("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
            """)
            views = await self.postgres.execute("""
                SELECT matviewname
                FROM pg_matviews
                WHERE schemaname = 'public'
            """)
            status["connected"] = True
            status["tables"] = [table["table_name"] for table in tables]
            status["views"] = [view["matviewname"] for view in views]
        except Exception as e:
            self.logger.error("PostgreSQL status check failed", error=str(e))
        return status


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Leaderboard migration runner")
    parser.add_argument("--migration-dir", default=str(DEFAULT_MIGRATIONS_DIR), help="Migration directory")
    parser.add_argument("--status", action="store_true", help="Check migration status")
    args = parser.parse_args()

    setup_logging("leaderboard-migrations", format_type="console")

    postgres = PostgresClient(
        PostgresConfig(
            dsn=os.getenv("LEADERBOARD_POSTGRES_DSN", "postgresql://localhost:5432/leaderboard"),
            min_size=1,
            max_size=2,
            timeout=30
        )
    )
    runner = MigrationRunner(postgres)

    async with postgres:
        if args.status:
            status = await runner.check_status()
            print("Migration Status:")
            print(f"PostgreSQL: {'Connected' if status['connected'] else 'Disconnected'}")
            print(f"Tables: {', '.join(status['tables']) or '-'}")
            print(f"Materialized views: {', '.join(status['views']) or '-'}")
            return

        await runner.run_migrations(args.migration_dir)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
