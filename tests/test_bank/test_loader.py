"""Tests for the vulnerability bank loader."""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from stewart.bank.loader import build_bank, build_check, load_bank
from stewart.checks.models import FileCheck, RegistryCheck, ShellCheck
from stewart.exceptions import BankError
from tests.conftest import SAMPLE_BANK


class TestBuildCheck(unittest.TestCase):

    def test_registry_record(self):
        check = build_check(SAMPLE_BANK[0])
        self.assertIsInstance(check, RegistryCheck)
        self.assertEqual(check.id, "OS-001")
        self.assertEqual(check.value, "NoDriveTypeAutoRun")
        self.assertEqual(check.secure_value, "255")
        self.assertEqual(check.operator, "Exists")

    def test_powershell_record_is_shell_check(self):
        check = build_check(SAMPLE_BANK[1])
        self.assertIsInstance(check, ShellCheck)
        self.assertEqual(check.check_command, "(Get-SmbServerConfiguration).EnableSMB1Protocol")
        self.assertEqual(check.find_data, "False")

    def test_file_record(self):
        check = build_check(SAMPLE_BANK[2])
        self.assertIsInstance(check, FileCheck)
        self.assertEqual(check.secure_text, "password=")

    def test_check_type_is_case_insensitive(self):
        self.assertIsInstance(build_check({"ID": "X", "CheckType": "REGISTRY"}), RegistryCheck)
        self.assertIsInstance(build_check({"ID": "Y", "CheckType": "shell"}), ShellCheck)

    def test_snake_case_keys(self):
        check = build_check({"id": "F-1", "check_type": "file", "path": "/etc/issue", "find_data": "x"})
        self.assertEqual(check.path, "/etc/issue")
        self.assertEqual(check.find_data, "x")

    def test_non_string_values(self):
        check = build_check({"ID": 7, "CheckType": "Registry", "FindData": 0, "SecureValue": True})
        self.assertEqual(check.id, "7")
        self.assertEqual(check.find_data, "0")
        self.assertEqual(check.secure_value, "1")

    def test_fields_of_other_variants_ignored(self):
        check = build_check({"ID": "R", "CheckType": "Registry", "CheckCommand": "whoami", "Key": "HKLM\\X"})
        self.assertEqual(check.key, "HKLM\\X")
        self.assertFalse(hasattr(check, "check_command"))

    def test_unrecognised_records(self):
        self.assertIsNone(build_check({"ID": "X", "CheckType": "Kernel"}))
        self.assertIsNone(build_check({"ID": "X"}))
        self.assertIsNone(build_check({"CheckType": "File"}))
        self.assertIsNone(build_check({"ID": "  ", "CheckType": "File"}))
        self.assertIsNone(build_check(["not", "a", "record"]))


class TestBuildBank(unittest.TestCase):

    def test_keyed_by_id(self):
        bank = build_bank(SAMPLE_BANK)
        self.assertEqual(sorted(bank), ["FS-001", "OS-001", "PS-001"])

    def test_unknown_type_skipped(self):
        records = SAMPLE_BANK + [{"ID": "XX-1", "CheckType": "Service"}, "junk"]
        self.assertEqual(len(build_bank(records)), 3)

    def test_last_duplicate_wins(self):
        records = [
            {"ID": "D-1", "CheckType": "File", "Path": "/a"},
            {"ID": "D-1", "CheckType": "File", "Path": "/b"},
        ]
        self.assertEqual(build_bank(records)["D-1"].path, "/b")


class TestLoadBank(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp(prefix="stewart_bank_"))
        self.path = self.temp_dir / "bank.json"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write(self, data):
        self.path.write_text(json.dumps(data), encoding="utf-8")
        return self.path

    def test_array_form(self):
        bank = load_bank(self.write(SAMPLE_BANK))
        self.assertEqual(len(bank), 3)
        self.assertIsInstance(bank["PS-001"], ShellCheck)

    def test_object_form(self):
        bank = load_bank(self.write({"version": 2, "checks": SAMPLE_BANK}))
        self.assertEqual(len(bank), 3)

    def test_accepts_str_path_and_bom(self):
        self.path.write_text("\ufeff" + json.dumps(SAMPLE_BANK), encoding="utf-8")
        self.assertEqual(len(load_bank(str(self.path))), 3)

    def test_missing_file(self):
        with self.assertRaises(BankError):
            load_bank(self.temp_dir / "nope.json")

    def test_malformed_json(self):
        self.path.write_text("[{\"ID\": ", encoding="utf-8")
        with self.assertRaises(BankError) as ctx:
            load_bank(self.path)
        self.assertIn("Malformed", str(ctx.exception))

    def test_wrong_shape(self):
        with self.assertRaises(BankError):
            load_bank(self.write({"ID": "OS-001"}))
        with self.assertRaises(BankError):
            load_bank(self.write("checks"))

    def test_no_usable_checks(self):
        with self.assertRaises(BankError):
            load_bank(self.write([{"ID": "X", "CheckType": "Unknown"}]))
        with self.assertRaises(BankError):
            load_bank(self.write([]))

    def test_too_large(self):
        self.write(SAMPLE_BANK)
        with mock.patch("stewart.bank.loader.MAX_BANK_SIZE", 10):
            with self.assertRaises(BankError):
                load_bank(self.path)


if __name__ == "__main__":
    unittest.main()
