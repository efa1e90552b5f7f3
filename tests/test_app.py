import unittest

from repotxt.app import app
from repotxt.ranges import LineRange

from support import TreeTestCase


class ApiTests(TreeTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.write_file("src/app.py", "\n".join(f"line {i}" for i in range(1, 11)))
        self.write_file("debug.log", "noise")
        self.core = self.make_core(["*.log"])
        app.config["REPOTXT_CORE"] = self.core
        self.client = app.test_client()

    def tearDown(self) -> None:
        app.config.pop("REPOTXT_CORE", None)
        super().tearDown()

    def test_tree_lists_children_with_verdicts(self) -> None:
        data = self.client.get("/api/tree").get_json()
        self.assertEqual(data["parent"]["path"], "")
        self.assertEqual(data["total"], 2)
        self.assertFalse(data["has_more"])
        by_name = {c["name"]: c for c in data["children"]}
        self.assertEqual([c["name"] for c in data["children"]], ["src", "debug.log"])
        self.assertTrue(by_name["src"]["isDirectory"])
        self.assertTrue(by_name["src"]["hasChildren"])
        self.assertTrue(by_name["debug.log"]["excluded"])
        self.assertEqual(by_name["debug.log"]["size"], 5)

        nested = self.client.get("/api/tree?path=src").get_json()
        self.assertEqual(nested["parent"]["path"], "src")
        self.assertEqual([c["path"] for c in nested["children"]], ["src/app.py"])

    def test_tree_rejects_missing_folder(self) -> None:
        self.assertEqual(self.client.get("/api/tree?path=nope").status_code, 400)

    def test_toggle_updates_state(self) -> None:
        resp = self.client.post("/api/toggle", json={"path": "debug.log"})
        self.assertEqual(resp.get_json(), {"path": "debug.log", "excluded": False})

        state = self.client.get("/api/state").get_json()
        self.assertEqual(state["root"], str(self.root))
        self.assertEqual(state["includes"], [self.p("debug.log")])

        resp = self.client.post("/api/states", json={"paths": ["debug.log", "src"]})
        self.assertEqual(
            resp.get_json()["states"],
            [{"path": "debug.log", "excluded": False}, {"path": "src", "excluded": False}],
        )

    def test_toggle_multiple_and_reset(self) -> None:
        self.client.post("/api/toggle-multiple", json={"paths": ["src", "debug.log"]})
        self.assertTrue(self.core.effectively_excluded("src/app.py"))
        state = self.client.post("/api/reset").get_json()
        self.assertEqual(state["includes"], [])
        self.assertEqual(state["excludes"], [])

    def test_exclusion_query(self) -> None:
        data = self.client.get("/api/exclusion?path=debug.log").get_json()
        self.assertEqual(
            data,
            {"path": "debug.log", "effectivelyExcluded": True, "visuallyExcluded": True, "partial": False},
        )

    def test_range_endpoints(self) -> None:
        self.client.post("/api/ranges", json={"path": "src/app.py", "selections": [{"start": 1, "end": 3}]})
        self.client.post("/api/ranges", json={"path": "src/app.py", "selections": [{"start": 5, "end": 7}]})
        resp = self.client.post("/api/ranges", json={"path": "src/app.py", "selections": [{"start": 4, "end": 4}]})
        self.assertEqual(resp.get_json()["ranges"], [{"start": 1, "end": 7}])

        resp = self.client.delete("/api/ranges", json={"path": "src/app.py", "selections": [{"start": 3, "end": 5}]})
        self.assertEqual(resp.get_json()["ranges"], [{"start": 1, "end": 2}, {"start": 6, "end": 7}])

        got = self.client.get("/api/ranges?path=src/app.py").get_json()
        self.assertEqual(got["ranges"], [{"start": 1, "end": 2}, {"start": 6, "end": 7}])

        self.client.post("/api/ranges/clear", json={"all": True})
        self.assertEqual(self.client.get("/api/ranges?path=src/app.py").get_json()["ranges"], [])

    def test_invalid_selection_is_rejected(self) -> None:
        for selection in ({"start": 0, "end": 2}, {"start": 5, "end": 2}, {"start": "1", "end": 2}):
            resp = self.client.post("/api/ranges", json={"path": "src/app.py", "selections": [selection]})
            self.assertEqual(resp.status_code, 400)
            self.assertIn("error", resp.get_json())
        self.assertFalse(self.core.has_partial("src/app.py"))

    def test_path_outside_workspace_is_rejected(self) -> None:
        resp = self.client.post("/api/toggle", json={"path": "../elsewhere"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.client.post("/api/toggle", json={}).status_code, 400)

    def test_report_and_stats(self) -> None:
        resp = self.client.get("/api/report")
        self.assertTrue(resp.content_type.startswith("text/plain"))
        text = resp.get_data(as_text=True)
        self.assertIn("File: src/app.py\n", text)
        self.assertNotIn("debug.log", text)

        stats = self.client.get("/api/stats").get_json()
        self.assertEqual(stats, {"lines": text.count("\n") + 1, "chars": len(text), "files": 1})

        content = (self.root / "src" / "app.py").read_text(encoding="utf-8")
        file_stats = self.client.get("/api/stats?path=src/app.py").get_json()
        self.assertEqual(file_stats, {"lines": 10, "chars": len(content)})

    def test_events_schedule_rebuild(self) -> None:
        self.write_file("src/new.log", "")
        resp = self.client.post(
            "/api/events",
            json={"events": [{"kind": "create", "path": "src/new.log"}, {"kind": "change", "path": "src/app.py"}]},
        )
        self.assertEqual(resp.get_json(), {"accepted": 2, "rebuildPending": True})
        self.core.flush()
        self.assertTrue(self.core.effectively_excluded("src/new.log"))

        self.assertEqual(self.client.post("/api/events", json={"kind": "moved", "path": "x"}).status_code, 400)

    def test_bad_event_rejects_the_whole_batch(self) -> None:
        self.core.add_ranges("src/app.py", [LineRange(1, 2)])
        (self.root / "src" / "app.py").unlink()

        for bad in ({"kind": "moved", "path": "x"}, {"kind": "change"}, "delete x"):
            resp = self.client.post(
                "/api/events",
                json={"events": [{"kind": "delete", "path": "src/app.py"}, bad]},
            )
            self.assertEqual(resp.status_code, 400)

        self.assertTrue(self.core.has_partial("src/app.py"))
        self.assertFalse(self.core.rebuild_pending)

    def test_refresh_bumps_revision(self) -> None:
        before = self.core.revision
        data = self.client.post("/api/refresh").get_json()
        self.assertEqual(data["revision"], before + 1)

    def test_config_round_trip(self) -> None:
        config = self.client.get("/api/config").get_json()
        self.assertEqual(config["autoExcludePatterns"], ["*.log"])

        updated = self.client.put("/api/config", json={"autoExcludePatterns": ["src"]}).get_json()
        self.assertEqual(updated["autoExcludePatterns"], ["src"])
        self.assertTrue(self.core.effectively_excluded("src/app.py"))
        self.assertFalse(self.core.effectively_excluded("debug.log"))


if __name__ == "__main__":
    unittest.main()
