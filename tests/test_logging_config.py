"""Audit events, structured formatting and environment configuration."""

import importlib
import json
import logging
import os
import sys
import unittest
from unittest import mock

from deepkey import FailureCode, HostContractViolation, KeyPair, validate_update_change_rule
from deepkey import config
from deepkey.logging_config import (
    AuditLogger,
    StructuredFormatter,
    get_validation_id,
    set_validation_id,
    validation_id_var,
)

from tests.fixtures import KeysetScenario, make_spec


class TestAuditEvents(unittest.TestCase):

    def setUp(self):
        self.scenario = KeysetScenario()
        fda = self.scenario.fda
        self.create = self.scenario.create_rule(make_spec([fda.agent], 1))
        token = validation_id_var.set("")
        self.addCleanup(validation_id_var.reset, token)

    def events(self, records):
        return [r.extra_fields["event_type"] for r in records]

    def test_rejection_decision(self):
        update = self.scenario.update_rule(
            self.create, make_spec([self.scenario.fda.agent], 0), [(0, self.scenario.fda.keypair)],
        )
        with self.assertLogs("deepkey.audit", level="DEBUG") as cm:
            validate_update_change_rule(update, self.scenario.store)

        self.assertEqual(self.events(cm.records), ["VALIDATION_REQUEST", "VALIDATION_DECISION"])
        decision = cm.records[-1]
        self.assertEqual(decision.levelno, logging.WARNING)
        self.assertEqual(decision.extra_fields["failure_code"], FailureCode.NOT_ENOUGH_SIGNATURES.value)
        self.assertEqual(decision.extra_fields["element_address"], update.address)

    def test_deferral(self):
        stranger = KeyPair.generate().agent
        update = self.scenario.update_rule(
            self.create, make_spec([stranger], 1), [(0, self.scenario.fda.keypair)],
        )
        with self.assertLogs("deepkey.audit", level="INFO") as cm:
            validate_update_change_rule(update, self.scenario.store)

        self.assertEqual(self.events(cm.records), ["VALIDATION_DEFERRED"])
        self.assertEqual(cm.records[0].extra_fields["dependencies"], [stranger])

    def test_host_contract_violation(self):
        with self.assertLogs("deepkey.audit", level="CRITICAL") as cm:
            with self.assertRaises(HostContractViolation):
                validate_update_change_rule(self.create, self.scenario.store)

        self.assertEqual(self.events(cm.records), ["HOST_CONTRACT_VIOLATION"])
        self.assertEqual(cm.records[0].extra_fields["header_type"], "create")

    def test_validation_id_attached(self):
        set_validation_id("v-123")
        with self.assertLogs("deepkey.audit", level="INFO") as cm:
            AuditLogger().validation_decision("create", "sha256:x", "VALID")

        self.assertEqual(cm.records[0].extra_fields["validation_id"], "v-123")
        self.assertEqual(get_validation_id(), "v-123")

    def test_generated_validation_id(self):
        generated = set_validation_id()

        self.assertEqual(len(generated), 32)
        self.assertEqual(get_validation_id(), generated)


class TestStructuredFormatter(unittest.TestCase):

    def setUp(self):
        token = validation_id_var.set("")
        self.addCleanup(validation_id_var.reset, token)

    def test_json_line(self):
        record = logging.LogRecord("deepkey.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.extra_fields = {"event_type": "VALIDATION_DECISION", "outcome": "VALID"}
        data = json.loads(StructuredFormatter().format(record))

        self.assertEqual(data["message"], "hello world")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["event_type"], "VALIDATION_DECISION")
        self.assertTrue(data["timestamp"].endswith("Z"))
        self.assertNotIn("source", data)
        self.assertNotIn("validation_id", data)

    def test_source_location_on_request(self):
        record = logging.LogRecord("deepkey.test", logging.WARNING, __file__, 42, "msg", (), None, func="check")
        data = json.loads(StructuredFormatter(include_source=True).format(record))

        self.assertEqual(data["source"], "test_logging_config.check:42")

    def test_validation_id_from_context(self):
        token = validation_id_var.set("v-ctx")
        self.addCleanup(validation_id_var.reset, token)
        record = logging.LogRecord("deepkey.store", logging.DEBUG, __file__, 1, "plain", (), None)

        self.assertEqual(json.loads(StructuredFormatter().format(record))["validation_id"], "v-ctx")

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("deepkey.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        data = json.loads(StructuredFormatter().format(record))

        self.assertIn("ValueError: boom", data["exception"])


class TestConfig(unittest.TestCase):

    def tearDown(self):
        importlib.reload(config)

    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            importlib.reload(config)

            self.assertEqual(config.ENV, "dev")
            self.assertEqual(config.STORE_PATH, "store.json")
            self.assertTrue(config.LOG_JSON)
            self.assertIsNone(config.LOG_FILE)
            self.assertFalse(config.is_production())
            self.assertFalse(config.is_debug())
            self.assertTrue(all(config.validate_config().values()))

    def test_environment_overrides(self):
        env = {
            "DEEPKEY_ENV": "prod",
            "DEEPKEY_LOG_LEVEL": "LOUD",
            "DEEPKEY_LOG_JSON": "0",
            "DEEPKEY_STORE_PATH": "/tmp/snapshot.json",
            "DEEPKEY_DEBUG": "true",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            importlib.reload(config)

            self.assertTrue(config.is_production())
            self.assertTrue(config.is_debug())
            self.assertFalse(config.LOG_JSON)
            self.assertEqual(config.STORE_PATH, "/tmp/snapshot.json")
            self.assertFalse(config.validate_config()["log_level"])

    def test_setup_logging(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        self.addCleanup(lambda: (setattr(root, "handlers", saved_handlers), root.setLevel(saved_level)))

        with mock.patch.dict(os.environ, {"DEEPKEY_DEBUG": "1"}, clear=True):
            importlib.reload(config)
            config.setup_logging()

        self.assertEqual(root.level, logging.DEBUG)
        self.assertIsInstance(root.handlers[0].formatter, StructuredFormatter)

    def test_setup_logging_reports_invalid_settings(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        self.addCleanup(lambda: (setattr(root, "handlers", saved_handlers), root.setLevel(saved_level)))

        env = {"DEEPKEY_ENV": "prod", "DEEPKEY_LOG_LEVEL": "LOUD", "DEEPKEY_LOG_JSON": "0"}
        with mock.patch.dict(os.environ, env, clear=True):
            importlib.reload(config)
            with self.assertLogs("deepkey.config", level="WARNING") as cm:
                config.setup_logging()

        self.assertEqual(root.level, logging.INFO)
        self.assertIsInstance(root.handlers[0].formatter, StructuredFormatter)
        self.assertEqual(len(cm.records), 1)
        self.assertIn("log_level", cm.records[0].getMessage())

    def test_setup_logging_text_format_outside_production(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        self.addCleanup(lambda: (setattr(root, "handlers", saved_handlers), root.setLevel(saved_level)))

        with mock.patch.dict(os.environ, {"DEEPKEY_LOG_JSON": "0"}, clear=True):
            importlib.reload(config)
            config.setup_logging()

        self.assertNotIsInstance(root.handlers[0].formatter, StructuredFormatter)


if __name__ == "__main__":
    unittest.main()
