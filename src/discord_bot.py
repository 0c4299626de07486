# Herald - Discord Scheduling Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Herald Discord Bot

Hosts the scheduler: opens the database pool, wires the event store and
handlers into a SchedulerService, registers the /remind commands and
starts scheduling once the gateway connection is ready.
"""

import asyncio
import logging
import os
from typing import Optional

import asyncpg
import discord
from discord.ext import commands
from dotenv import load_dotenv

import analytics
from scheduling import EventStore, SchedulerConfig, SchedulerService, register_default_handlers

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("herald")


class HeraldBot(commands.Bot):
    """Discord bot that delivers scheduled events."""

    def __init__(self, database_url: Optional[str] = None):
        intents = discord.Intents.default()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.database_url = database_url or os.getenv("DATABASE_URL")
        self.db_pool: Optional[asyncpg.Pool] = None
        self.scheduler: Optional[SchedulerService] = None
        self._scheduler_started = False

    async def setup_hook(self):
        """Called when the bot is starting up."""
        logger.info(f"Setup: DATABASE_URL={'set' if self.database_url else 'missing'}")

        if not self.database_url:
            logger.warning("No DATABASE_URL, scheduler disabled")
            return

        try:
            self.db_pool = await asyncpg.create_pool(self.database_url)
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}", exc_info=True)
            logger.warning("Scheduler disabled due to database failure")
            return

        analytics.configure(pool=self.db_pool)

        config = SchedulerConfig.from_env()
        self.scheduler = SchedulerService(self, EventStore(self.db_pool), config)
        register_default_handlers(self.scheduler)

        from commands.remind_commands import RemindCommands

        await self.add_cog(RemindCommands(self, self.scheduler))
        synced = await self.tree.sync()
        logger.info(f"Synced {len(synced)} application command(s)")

    async def on_ready(self):
        """Called when the bot has connected to Discord (again, after reconnects)."""
        logger.info(f"Logged in as {self.user} (ID: {self.user.id}), {len(self.guilds)} guild(s)")

        # Channels must be cached before the first poll tick resolves targets
        if self.scheduler is not None and not self._scheduler_started:
            self._scheduler_started = True
            await self.scheduler.initialize()

    async def close(self):
        """Clean up resources on shutdown."""
        if self.scheduler is not None:
            self.scheduler.shutdown()
            logger.info("Scheduler service shut down")
        await analytics.shutdown()
        if self.db_pool:
            await self.db_pool.close()
        await super().close()


async def main():
    """Run the bot."""
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        print("Error: DISCORD_BOT_TOKEN environment variable not set")
        print("Please set it in your .env file")
        return

    bot = HeraldBot()
    async with bot:
        await bot.start(token)


def run():
    """Console entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
