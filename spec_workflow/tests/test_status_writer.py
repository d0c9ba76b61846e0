import tempfile
import unittest
from pathlib import Path

from spec_workflow.parsers.status_writer import set_task_status, update_task_status
from spec_workflow.parsers.tasks import parse_tasks


class StatusWriterTests(unittest.TestCase):
    def test_only_marker_of_matching_task_changes(self) -> None:
        text = "# Tasks\n- [ ] 1 Set up\n  - detail\n- [ ] 1.1 Nested id\n- [x] 2 Done\n"
        updated = set_task_status(text, "1", "in-progress")
        self.assertEqual(
            updated,
            "# Tasks\n- [-] 1 Set up\n  - detail\n- [ ] 1.1 Nested id\n- [x] 2 Done\n",
        )

    def test_empty_marker_and_crlf_are_handled(self) -> None:
        updated = set_task_status("- [] 3 Write docs\r\n- [ ] 4 Next\r\n", "3", "completed")
        self.assertEqual(updated, "- [x] 3 Write docs\r\n- [ ] 4 Next\r\n")

    def test_round_trips_through_parser(self) -> None:
        text = "- [x] 1 Done\n- [ ] 2 Todo\n"
        updated = set_task_status(text, "1", "pending")
        self.assertEqual([t.status for t in parse_tasks(updated).tasks], ["pending", "pending"])

    def test_unknown_task_returns_none(self) -> None:
        self.assertIsNone(set_task_status("- [ ] 1 Only\n", "9", "completed"))

    def test_unknown_status_raises(self) -> None:
        with self.assertRaises(ValueError):
            set_task_status("- [ ] 1 Only\n", "1", "done")

    def test_update_task_status_writes_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "tasks.md"
            path.write_text("- [ ] 1 Set up\n- [ ] 2 Build\n", encoding="utf-8")

            self.assertTrue(update_task_status(path, "2", "completed"))
            self.assertEqual(path.read_text(encoding="utf-8"), "- [ ] 1 Set up\n- [x] 2 Build\n")
            self.assertFalse(update_task_status(path, "7", "completed"))


if __name__ == "__main__":
    unittest.main()
