"""Command line entry points, exercised through their argparse namespaces."""

import argparse
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from deepkey import KeyPair, save_store, verify_signature
from deepkey import cli

from tests.fixtures import KeysetScenario, make_spec


def run(func, **kwargs):
    """Run a command; returns (exit code, stdout)."""
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = func(argparse.Namespace(**kwargs))
    return code, out.getvalue()


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

        self.scenario = KeysetScenario()
        fda = self.scenario.fda
        self.create = self.scenario.create_rule(make_spec([fda.agent], 1))
        self.device, self.acceptance = self.scenario.join_device()
        self.store_path = self.path("store.json")
        save_store(self.scenario.store, self.store_path)

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def write(self, name, data):
        path = self.path(name)
        cli.save_json(data, path)
        return path

    def validate(self, element, operation):
        element_path = self.write("element.json", element.to_dict())
        return run(cli.cmd_validate, store=self.store_path, element=element_path, operation=operation)

    def test_validate_valid(self):
        code, out = self.validate(self.create, "create")

        self.assertEqual(code, cli.EXIT_VALID)
        self.assertEqual(json.loads(out)["outcome"], "VALID")

    def test_validate_invalid(self):
        code, out = self.validate(self.create, "delete")

        self.assertEqual(code, cli.EXIT_INVALID)
        self.assertEqual(json.loads(out)["failure_code"], "DELETE_ATTEMPTED")

    def test_validate_deferred(self):
        stranger = KeyPair.generate().agent
        element = self.scenario.update_rule(
            self.create, make_spec([stranger], 1), [(0, self.scenario.fda.keypair)],
        )
        code, out = self.validate(element, "update")

        self.assertEqual(code, cli.EXIT_DEFERRED)
        self.assertEqual(json.loads(out)["dependencies"], [stranger])

    def test_validate_host_contract_violation(self):
        code, out = self.validate(self.create, "update")

        self.assertEqual(code, cli.EXIT_HOST_ERROR)
        self.assertEqual(out, "")

    def test_validate_malformed_element(self):
        for header_changes in ({"type": "bogus"}, {"header_seq": -1}):
            data = self.create.to_dict()
            data["header"].update(header_changes)
            element_path = self.write("element.json", data)

            err = io.StringIO()
            with redirect_stdout(io.StringIO()) as out, redirect_stderr(err):
                code = cli.cmd_validate(argparse.Namespace(
                    store=self.store_path, element=element_path, operation="create",
                ))

            self.assertEqual(code, cli.EXIT_INVALID)
            self.assertEqual(out.getvalue(), "")
            self.assertIn("Malformed element", err.getvalue())

    def test_hash_element(self):
        path = self.write("element.json", self.create.to_dict())
        _, out = run(cli.cmd_hash, file=path)

        self.assertIn(f"header_address: {self.create.address}", out)
        self.assertIn(f"entry_address: {self.create.entry_address}", out)

    def test_hash_plain_json(self):
        path = self.write("data.json", {"b": 1, "a": 2})
        _, out = run(cli.cmd_hash, file=path)

        self.assertIn("sha256:", out)

    def test_keygen_and_sign_spec(self):
        key_path = self.path("key.json")
        run(cli.cmd_keygen, output=key_path)
        keypair = KeyPair.from_dict(cli.load_json(key_path))

        spec = make_spec([keypair.agent], 1)
        spec_path = self.write("spec.json", spec.to_dict())
        code, out = run(cli.cmd_sign_spec, key=key_path, file=spec_path, position=0)

        self.assertEqual(code, 0)
        position, signature = json.loads(out)
        self.assertEqual(position, 0)
        self.assertTrue(verify_signature(keypair.agent, signature, spec.signing_bytes()))

    def test_sign_spec_rejects_bad_spec(self):
        key_path = self.write("key.json", KeyPair.generate().to_dict())
        spec_path = self.write("spec.json", {"authorized_signers": ["alice"], "sigs_required": 1})

        code, _ = run(cli.cmd_sign_spec, key=key_path, file=spec_path, position=0)
        self.assertEqual(code, 1)

    def test_lineage(self):
        update = self.scenario.update_rule(
            self.create, make_spec([self.scenario.fda.agent, self.device.agent], 1),
            [(0, self.scenario.fda.keypair)], publish=True,
        )
        save_store(self.scenario.store, self.store_path)

        code, out = run(cli.cmd_lineage, store=self.store_path, address=update.address)
        data = json.loads(out)

        self.assertEqual(code, 0)
        self.assertEqual(data["keyset_root"], self.scenario.keyset_root)
        self.assertEqual([s["address"] for s in data["steps"]], [self.create.address, update.address])

    def test_lineage_missing(self):
        code, _ = run(cli.cmd_lineage, store=self.store_path, address=self.scenario.keyset_root)
        self.assertEqual(code, cli.EXIT_INVALID)

    def test_demo_runs(self):
        _, out = run(cli.cmd_demo)

        self.assertIn("Demonstration complete.", out)
        self.assertIn("WRONG_NUMBER_OF_SIGNATURES", out)


if __name__ == "__main__":
    unittest.main()
