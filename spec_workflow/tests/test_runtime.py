import tempfile
import unittest
from pathlib import Path

from spec_workflow.runtime import workflow_runtime


class WorkflowRuntimeTests(unittest.IsolatedAsyncioTestCase):
    async def test_runtime_wires_components_and_stops_them(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            events: list = []

            async with workflow_runtime(root, listeners=[events.append]) as runtime:
                self.assertTrue(runtime.watcher.is_running)
                self.assertTrue(runtime.approvals.is_started)
                self.assertEqual(runtime.parser.get_all_specs(), [])

                with runtime.open_approvals() as store:
                    approval_id = store.create_approval(
                        "Requirements", ".spec-workflow/specs/a/requirements.md", "spec", "a", "document"
                    )
                self.assertEqual(runtime.approvals.get_approval(approval_id).status, "pending")

            self.assertFalse(runtime.watcher.is_running)
            self.assertFalse(runtime.approvals.is_started)

    async def test_runtime_without_watching(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            async with workflow_runtime(tmpdir, watch=False) as runtime:
                self.assertFalse(runtime.watcher.is_running)
                self.assertEqual(runtime.project_path, Path(tmpdir).resolve())


if __name__ == "__main__":
    unittest.main()
