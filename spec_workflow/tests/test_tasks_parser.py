import unittest

from spec_workflow.parsers.tasks import find_next_pending, find_task, parse_tasks, status_marker


SAMPLE_TASKS = """# Tasks

## Phase 1

- [x] 1 Set up project
  - Create the repository layout
  - _Requirements: 1.1, 1.2_
  - _Leverage: src/core/path_utils.py_
- [-] 2. Build the parser
  * Handle nested bullets
- [ ] 3 Wire the dashboard
- [] 4 Write docs

## Phase 2

- [ ] 5.1 Ship it
"""


class TaskParserTests(unittest.TestCase):
    def test_single_pending_task(self) -> None:
        result = parse_tasks("- [ ] 1 Set up project")
        self.assertEqual(len(result.tasks), 1)
        task = result.tasks[0]
        self.assertEqual(task.id, "1")
        self.assertEqual(task.description, "Set up project")
        self.assertEqual(task.status, "pending")

    def test_marker_maps_to_status(self) -> None:
        self.assertEqual(parse_tasks("- [x] 1 Set up project").tasks[0].status, "completed")
        self.assertEqual(parse_tasks("- [X] 1 Set up project").tasks[0].status, "completed")
        self.assertEqual(parse_tasks("- [-] 1 Set up project").tasks[0].status, "in-progress")
        self.assertEqual(parse_tasks("- [] 1 Set up project").tasks[0].status, "pending")

    def test_details_and_inline_metadata_are_folded_into_task(self) -> None:
        result = parse_tasks(SAMPLE_TASKS)
        first = result.tasks[0]
        self.assertEqual(first.details, ["Create the repository layout"])
        self.assertEqual(first.requirements, "1.1, 1.2")
        self.assertEqual(first.leverage, "src/core/path_utils.py")
        self.assertEqual(result.tasks[1].id, "2")
        self.assertEqual(result.tasks[1].details, ["Handle nested bullets"])

    def test_detail_lines_drop_their_bullet(self) -> None:
        result = parse_tasks("- [ ] 1 Task\n  - Bullet detail\n  * Star detail\n  Plain detail\n")
        self.assertEqual(result.tasks[0].details, ["Bullet detail", "Star detail", "Plain detail"])

    def test_status_counts_cover_every_task_line(self) -> None:
        result = parse_tasks(SAMPLE_TASKS)
        task_lines = [line for line in SAMPLE_TASKS.splitlines() if line.startswith("- [")]
        statuses = [task.status for task in result.tasks]
        self.assertEqual(len(result.tasks), len(task_lines))
        self.assertEqual(
            statuses.count("completed") + statuses.count("pending") + statuses.count("in-progress"),
            len(task_lines),
        )
        self.assertEqual(result.summary.total, 5)
        self.assertEqual(result.summary.completed, 1)
        self.assertEqual(result.summary.inProgress, 1)
        self.assertEqual(result.summary.pending, 3)

    def test_reparsing_is_identical(self) -> None:
        self.assertEqual(parse_tasks(SAMPLE_TASKS), parse_tasks(SAMPLE_TASKS))

    def test_ids_are_verbatim_and_duplicates_kept(self) -> None:
        result = parse_tasks("- [ ] 1.2 First\n- [x] 1.2 Second\n- [ ] 10 Tenth\n")
        self.assertEqual([t.id for t in result.tasks], ["1.2", "1.2", "10"])
        self.assertEqual([t.description for t in result.tasks], ["First", "Second", "Tenth"])

    def test_malformed_lines_are_skipped_not_fatal(self) -> None:
        text = "- [ ] 1 Good\n- [?] 2 Unknown marker\n- [ ] No identifier\n- [x] 3 Also good\n"
        result = parse_tasks(text)
        self.assertEqual([t.id for t in result.tasks], ["1", "3"])
        self.assertEqual(result.skippedLines, [2, 3])

    def test_heading_ends_task_block(self) -> None:
        result = parse_tasks("- [ ] 1 Task\n## Notes\n  - not a detail\n")
        self.assertEqual(result.tasks[0].details, [])

    def test_empty_text(self) -> None:
        result = parse_tasks("")
        self.assertEqual(result.tasks, [])
        self.assertEqual(result.summary.total, 0)

    def test_find_helpers(self) -> None:
        tasks = parse_tasks(SAMPLE_TASKS).tasks
        self.assertEqual(find_task(tasks, "5.1").description, "Ship it")
        self.assertIsNone(find_task(tasks, "99"))
        self.assertEqual(find_next_pending(tasks).id, "3")
        self.assertIsNone(find_next_pending(parse_tasks("- [x] 1 Done").tasks))

    def test_status_marker_rejects_unknown_status(self) -> None:
        self.assertEqual(status_marker("in-progress"), "-")
        with self.assertRaises(ValueError):
            status_marker("blocked")


if __name__ == "__main__":
    unittest.main()
