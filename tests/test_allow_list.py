import os
import unittest
from unittest import mock

from src.common.allow_list import matches, parse_allow_list
from src.common.config import EngineConfig


class MatchesTests(unittest.TestCase):
    def test_empty_subject_never_matches(self) -> None:
        for allow_list in ([], ["*"], [""], ["policy", "*"]):
            self.assertFalse(matches("", allow_list), allow_list)

    def test_empty_list_matches_nothing(self) -> None:
        self.assertFalse(matches("policy", []))

    def test_wildcard_matches_any_value(self) -> None:
        self.assertTrue(matches("policy", ["*"]))
        self.assertTrue(matches("anything.example.com", ["apps", "*"]))

    def test_verbatim_member_matches(self) -> None:
        self.assertTrue(matches("CREATE", ["UPDATE", "CREATE"]))

    def test_other_value_does_not_match(self) -> None:
        self.assertFalse(matches("DELETE", ["CREATE"]))

    def test_comparison_is_case_sensitive(self) -> None:
        self.assertFalse(matches("create", ["CREATE"]))
        self.assertFalse(matches("Policy ", ["Policy"]))


class ParseAllowListTests(unittest.TestCase):
    def test_splits_on_commas(self) -> None:
        self.assertEqual(parse_allow_list("apps,policy,*"), ("apps", "policy", "*"))

    def test_trims_and_drops_empty_tokens(self) -> None:
        self.assertEqual(parse_allow_list(" apps , ,policy,"), ("apps", "policy"))

    def test_missing_value_is_empty(self) -> None:
        self.assertEqual(parse_allow_list(None), ())
        self.assertEqual(parse_allow_list(""), ())


class EngineConfigTests(unittest.TestCase):
    def test_from_strings(self) -> None:
        config = EngineConfig.from_strings("policy", "podsecuritypolicies,pods", "*", debug=True)
        self.assertEqual(config.groups, ("policy",))
        self.assertEqual(config.resources, ("podsecuritypolicies", "pods"))
        self.assertEqual(config.operations, ("*",))
        self.assertTrue(config.debug)

    def test_from_env_reads_environment(self) -> None:
        env = {
            "ADMISSION_GROUPS": "apps",
            "ADMISSION_RESOURCES": "deployments",
            "ADMISSION_OPERATIONS": "DELETE",
            "ADMISSION_DEBUG": "true",
        }
        with mock.patch.dict(os.environ, env, clear=False):
            config = EngineConfig.from_env()
        self.assertEqual(config, EngineConfig(("apps",), ("deployments",), ("DELETE",), True))

    def test_explicit_values_override_environment(self) -> None:
        with mock.patch.dict(os.environ, {"ADMISSION_GROUPS": "apps"}, clear=False):
            config = EngineConfig.from_env(groups="batch", debug=False)
        self.assertEqual(config.groups, ("batch",))
        self.assertFalse(config.debug)

    def test_config_is_immutable(self) -> None:
        config = EngineConfig.from_strings("apps")
        with self.assertRaises(Exception):
            config.groups = ("policy",)  # type: ignore[misc]


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
