#!/usr/bin/env python3
"""
Create the first admin account and seed the model registry.

The admin is only created when no users exist yet (credentials default to
config.auth.admin_username / admin_default_password). Model seeding is an
upsert, so re-running the script refreshes costs without duplicating rows.

Usage:
    python scripts/bootstrap_admin.py
    python scripts/bootstrap_admin.py --username admin --password mypass
    python scripts/bootstrap_admin.py --skip-models --openrouter-key sk-or-...
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config.settings import settings
from src.admin.settings_store import AdminSettingsStore
from src.auth.users import UserExistsError, UserStore
from src.db.engine import get_engine, init_db
from src.llm.llm_manager import API_KEY_SETTING
from src.llm.model_registry import ModelRegistry

# (model_id, display_name, cost_per_message, is_free)
DEFAULT_MODELS = [
    (settings.llm.default_model, "Llama 3.2 3B (Free)", 1, True),
    ("google/gemini-2.0-flash-001", "Gemini 2.0 Flash", 3, False),
    ("openai/gpt-4o-mini", "GPT-4o mini", 5, False),
    ("anthropic/claude-3.5-haiku", "Claude 3.5 Haiku", 8, False),
]


def seed_models(registry: ModelRegistry) -> None:
    for model_id, display_name, cost, is_free in DEFAULT_MODELS:
        registry.upsert(
            model_id,
            display_name=display_name,
            cost_per_message=cost,
            is_free=is_free,
            is_active=True,
        )
        print(f"Model ready: {model_id} (cost={cost})")


def main():
    parser = argparse.ArgumentParser(description="Bootstrap first admin user and default models")
    parser.add_argument("--username", default=None, help="Admin username (default: from config)")
    parser.add_argument("--password", default=None, help="Admin password (default: from config)")
    parser.add_argument("--skip-models", action="store_true", help="Do not seed the model registry")
    parser.add_argument("--openrouter-key", default=None, help="Store the OpenRouter API key in admin settings")
    args = parser.parse_args()

    init_db()
    engine = get_engine()
    users = UserStore(engine)

    existing = users.list_users()
    if existing:
        print(f"Users already exist ({len(existing)}). Use an admin token with POST /admin/users.")
    else:
        username = args.username or settings.auth.admin_username
        password = args.password or settings.auth.admin_default_password
        if not username or not password:
            print("Error: username and password required (set in config or --username/--password)")
            sys.exit(1)
        try:
            users.create_user(user_id=username, password=password, is_admin=True)
        except (UserExistsError, ValueError) as e:
            print(f"Error: {e}")
            sys.exit(1)
        print(f"Created admin user: {username}")
        print("Login: POST /auth/login with body {\"user_id\": \"%s\", \"password\": \"...\"}" % username)

    if not args.skip_models:
        seed_models(ModelRegistry(engine))

    if args.openrouter_key:
        AdminSettingsStore(engine).set_value(API_KEY_SETTING, args.openrouter_key, is_encrypted=True)
        print("OpenRouter key stored in admin settings")


if __name__ == "__main__":
    main()
