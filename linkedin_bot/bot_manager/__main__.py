"""Allow ``python -m linkedin_bot.bot_manager`` to run the HTTP service."""

from .manager import main

main()
