import unittest

from src.decision import Decision, Deny, Mutate, PassThrough, assemble
from src.decision.assembler import DENIED_BY_POLICY_CODE, DENIED_BY_POLICY_REASON, PATCH_TYPE_JSON_PATCH
from src.sanitizer.guards import PatchError, validate_patch_ops


class AssembleTests(unittest.TestCase):
    def test_pass_through_is_allowed_without_patch(self) -> None:
        decision = assemble("uid-1", PassThrough())
        self.assertEqual(decision, Decision(allowed=True, correlation_id="uid-1"))

    def test_deny_carries_code_and_reason(self) -> None:
        decision = assemble("uid-2", Deny())
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.deny_code, DENIED_BY_POLICY_CODE)
        self.assertEqual(decision.deny_reason, DENIED_BY_POLICY_REASON)
        self.assertIsNone(decision.patch)
        self.assertEqual(decision.correlation_id, "uid-2")

    def test_empty_mutation_has_no_patch_markers(self) -> None:
        decision = assemble("uid-3", Mutate(()))
        self.assertTrue(decision.allowed)
        self.assertIsNone(decision.patch)
        self.assertIsNone(decision.patch_type)

    def test_mutation_attaches_json_patch(self) -> None:
        ops = ({"op": "remove", "path": "/spec/privileged"},)
        decision = assemble("uid-4", Mutate(ops))
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.patch, list(ops))
        self.assertEqual(decision.patch_type, PATCH_TYPE_JSON_PATCH)

    def test_correlation_id_is_copied_for_every_verdict(self) -> None:
        for verdict in (PassThrough(), Deny(500, "boom"), Mutate(()), Mutate(({"op": "remove", "path": "/a"},))):
            self.assertEqual(assemble("abc", verdict).correlation_id, "abc")
        self.assertIsNone(assemble(None, Deny()).correlation_id)

    def test_denied_decision_cannot_carry_patch(self) -> None:
        with self.assertRaises(ValueError):
            Decision(allowed=False, patch=[{"op": "remove", "path": "/spec/privileged"}])

    def test_empty_patch_document_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Decision(allowed=True, patch=[])

    def test_unknown_verdict_raises(self) -> None:
        with self.assertRaises(TypeError):
            assemble("uid", "allow")  # type: ignore[arg-type]


class PatchGuardTests(unittest.TestCase):
    def test_accepts_add_remove_replace(self) -> None:
        ops = [
            {"op": "add", "path": "/spec/a", "value": 1},
            {"op": "remove", "path": "/spec/b"},
            {"op": "replace", "path": "/spec/c", "value": []},
        ]
        self.assertEqual(validate_patch_ops(ops), ops)

    def test_rejects_malformed_operations(self) -> None:
        bad = [
            ["remove"],
            [{"op": "move", "path": "/a", "from": "/b"}],
            [{"op": "remove"}],
            [{"op": "remove", "path": "spec/privileged"}],
            [{"op": "replace", "path": "/spec/volumes"}],
        ]
        for ops in bad:
            with self.assertRaises(PatchError, msg=ops):
                validate_patch_ops(ops)

    def test_assemble_refuses_invalid_mutation(self) -> None:
        with self.assertRaises(PatchError):
            assemble("uid", Mutate(({"op": "test", "path": "/a", "value": 1},)))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
