import os
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

from generation.prompts.overrides import DEFAULT_CATEGORY_OVERRIDES, CategoryOverrides, OverrideFile
from showcase.config import AppSettings


class TestConfigValidation(unittest.TestCase):

    def setUp(self):
        """Set up the base directory for the tests."""
        self.base_dir = Path(__file__).resolve().parent.parent.parent
        self.configs_dir = self.base_dir / "configs"

    def test_prompt_overrides_file_is_valid(self):
        path = self.configs_dir / "prompt_overrides.yml"
        self.assertTrue(path.exists(), f"Missing configuration file: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        OverrideFile.model_validate(data)

    def test_shipped_overrides_cover_every_default_category(self):
        overrides = CategoryOverrides(self.configs_dir / "prompt_overrides.yml").load()
        for category in DEFAULT_CATEGORY_OVERRIDES:
            self.assertIn(category, overrides)

    def test_env_example_names_known_settings(self):
        env_example = self.base_dir / ".env.example"
        self.assertTrue(env_example.exists())
        known = set(AppSettings.model_fields)
        for line in env_example.read_text(encoding="utf-8").splitlines():
            if not line.strip() or line.startswith("#"):
                continue
            key = line.split("=", 1)[0].strip()
            self.assertIn(key, known, f"{key} is not an AppSettings field")

    def test_google_api_key_alias(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("GEMINI_API_KEY", None)
            settings = AppSettings(_env_file=None, GOOGLE_API_KEY="google-key-0123456789")
        self.assertEqual(settings.GEMINI_API_KEY, "google-key-0123456789")
