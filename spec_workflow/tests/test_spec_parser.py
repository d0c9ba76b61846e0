import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest import mock

from spec_workflow.db.approval_storage import ApprovalStorage
from spec_workflow.models import PhaseStatus, SpecData, SpecPhases, TaskProgress
from spec_workflow.parsers.specs import (
    SpecDocumentWriter,
    SpecParser,
    WorkflowOrderError,
    derive_workflow_status,
    display_name,
)


def _write_spec(root: Path, name: str, **documents: str) -> Path:
    spec_dir = root / ".spec-workflow" / "specs" / name
    spec_dir.mkdir(parents=True, exist_ok=True)
    for document, content in documents.items():
        (spec_dir / f"{document}.md").write_text(content, encoding="utf-8")
    return spec_dir


class SpecParserTests(unittest.TestCase):
    def test_requirements_only_spec(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_spec(root, "user-auth", requirements="# Requirements\n\nUsers can sign in.\n")

            spec = SpecParser(root).get_spec("user-auth")
            self.assertIsNotNone(spec)
            assert spec is not None
            self.assertEqual(spec.name, "user-auth")
            self.assertEqual(spec.displayName, "User Auth")
            self.assertEqual(spec.description, "Users can sign in.")
            self.assertTrue(spec.phases.requirements.exists)
            self.assertFalse(spec.phases.requirements.approved)
            self.assertFalse(spec.phases.design.exists)
            self.assertFalse(spec.phases.tasks.exists)
            self.assertFalse(spec.phases.implementation.exists)
            self.assertIsNone(spec.taskProgress)
            self.assertTrue(spec.createdAt)
            self.assertTrue(spec.lastModified)

    def test_empty_or_blank_documents_do_not_exist(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_spec(root, "user-auth", requirements="# R\n", design="", tasks="  \n\t\n")

            spec = SpecParser(root).get_spec("user-auth")
            assert spec is not None
            self.assertFalse(spec.phases.design.exists)
            self.assertFalse(spec.phases.tasks.exists)
            self.assertIsNone(spec.phases.design.content)
            self.assertIsNone(spec.taskProgress)

    def test_missing_spec_is_not_found(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            parser = SpecParser(Path(tmpdir))
            self.assertIsNone(parser.get_spec("nope"))
            self.assertIsNone(parser.get_spec("../escape"))
            self.assertEqual(parser.get_all_specs(), [])

    def test_all_specs_are_listed_by_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_spec(root, "beta", requirements="# B\n")
            _write_spec(root, "alpha")
            (root / ".spec-workflow" / "specs" / "stray.md").write_text("x", encoding="utf-8")

            names = [spec.name for spec in SpecParser(root).get_all_specs()]
            self.assertEqual(names, ["alpha", "beta"])

    def test_task_progress_excludes_in_progress_from_completed_and_pending(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_spec(
                root,
                "user-auth",
                requirements="# R\n",
                design="# D\n",
                tasks="- [x] 1 Done\n- [-] 2 Working\n- [ ] 3 Todo\n- [ ] 4 Todo\n",
            )

            spec = SpecParser(root).get_spec("user-auth")
            assert spec is not None
            self.assertEqual(spec.taskProgress, TaskProgress(total=4, completed=1, pending=2))
            self.assertTrue(spec.phases.implementation.exists)

    def test_last_modified_is_latest_phase_mtime(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            spec_dir = _write_spec(root, "user-auth", requirements="# R\n", design="# D\n")
            older = datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
            newer = datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc).timestamp()
            os.utime(spec_dir / "requirements.md", (older, older))
            os.utime(spec_dir / "design.md", (newer, newer))

            spec = SpecParser(root).get_spec("user-auth")
            assert spec is not None
            self.assertEqual(spec.lastModified, "2024-06-01T12:30:00.000Z")
            self.assertEqual(spec.phases.requirements.lastModified, "2024-01-01T00:00:00.000Z")

    def test_blank_phase_does_not_feed_timestamps(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            spec_dir = _write_spec(root, "user-auth", requirements="# R\n", design="  \n")
            older = datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
            newer = datetime(2024, 6, 1, tzinfo=timezone.utc).timestamp()
            os.utime(spec_dir / "requirements.md", (older, older))
            os.utime(spec_dir / "design.md", (newer, newer))

            spec = SpecParser(root).get_spec("user-auth")
            assert spec is not None
            self.assertFalse(spec.phases.design.exists)
            self.assertIsNone(spec.phases.design.lastModified)
            self.assertEqual(spec.lastModified, "2024-01-01T00:00:00.000Z")

    def test_frontmatter_description(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_spec(
                root,
                "user-auth",
                requirements="---\ndescription: Password and SSO login\n---\n# Requirements\n\nBody\n",
            )
            spec = SpecParser(root).get_spec("user-auth")
            assert spec is not None
            self.assertEqual(spec.description, "Password and SSO login")

    def test_approved_phase_comes_from_approval_records(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            spec_dir = _write_spec(root, "user-auth", requirements="# R\n", design="# D\n")

            with ApprovalStorage(root) as store:
                req_id = store.create_approval(
                    "Requirements", str(spec_dir / "requirements.md"), "spec", "user-auth", "document"
                )
                store.update_approval(req_id, "approved", "Looks good")
                design_id = store.create_approval(
                    "Design", ".spec-workflow/specs/user-auth/design.md", "spec", "user-auth", "document"
                )
                store.update_approval(design_id, "rejected", "Rework")

                spec = SpecParser(root, approvals=store).get_spec("user-auth")

            assert spec is not None
            self.assertTrue(spec.phases.requirements.approved)
            self.assertFalse(spec.phases.design.approved)
            self.assertTrue(spec.phases.design.exists)

    def test_unreadable_phase_is_reported_and_marked_missing(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write_spec(root, "user-auth", requirements="# R\n", design="# D\n")
            real_read_text = Path.read_text

            def _read_text(path: Path, *args, **kwargs):
                if path.name == "design.md":
                    raise PermissionError(13, "Permission denied", str(path))
                return real_read_text(path, *args, **kwargs)

            with mock.patch.object(Path, "read_text", _read_text):
                spec = SpecParser(root).get_spec("user-auth")

            assert spec is not None
            self.assertTrue(spec.phases.requirements.exists)
            self.assertFalse(spec.phases.design.exists)
            self.assertEqual(len(spec.readErrors), 1)
            error = spec.readErrors[0]
            self.assertEqual(error.document, "design")
            self.assertTrue(error.path.endswith("user-auth/design.md"))
            self.assertIn("Permission denied", error.message)

    def test_steering_status(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            parser = SpecParser(root)
            self.assertFalse(parser.get_steering_status().exists)

            steering = root / ".spec-workflow" / "steering"
            steering.mkdir(parents=True)
            (steering / "product.md").write_text("# Product\n", encoding="utf-8")
            (steering / "tech.md").write_text("", encoding="utf-8")

            status = parser.get_steering_status()
            self.assertTrue(status.exists)
            self.assertTrue(status.documents.product)
            self.assertFalse(status.documents.tech)
            self.assertFalse(status.documents.structure)
            self.assertIsNotNone(status.lastModified)

            documents = {doc.name: doc for doc in parser.get_steering_documents()}
            self.assertTrue(documents["product"].exists)
            self.assertFalse(documents["structure"].exists)
            self.assertIsNone(documents["structure"].lastModified)

    def test_display_name(self) -> None:
        self.assertEqual(display_name("user-auth"), "User Auth")
        self.assertEqual(display_name("api_v2.client"), "Api V2 Client")


class SpecDocumentWriterTests(unittest.TestCase):
    def test_workflow_order_is_enforced(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            writer = SpecDocumentWriter(root)
            spec_dir = root / ".spec-workflow" / "specs" / "user-auth"

            with self.assertRaises(WorkflowOrderError) as ctx:
                writer.write("user-auth", "design", "# D\n")
            self.assertEqual(ctx.exception.missing, "requirements")
            self.assertFalse((spec_dir / "design.md").exists())

            writer.write("user-auth", "requirements", "")
            with self.assertRaises(WorkflowOrderError):
                writer.write("user-auth", "design", "# D\n")

            writer.write("user-auth", "requirements", "# R\n")
            with self.assertRaises(WorkflowOrderError):
                writer.write("user-auth", "tasks", "- [ ] 1 T\n")

            path = writer.write("user-auth", "design", "# D\n")
            self.assertEqual(path.read_text(encoding="utf-8"), "# D\n")
            writer.write("user-auth", "tasks", "- [ ] 1 T\n")
            self.assertTrue((spec_dir / "tasks.md").exists())

    def test_rejects_unknown_document_and_bad_names(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            writer = SpecDocumentWriter(Path(tmpdir))
            with self.assertRaises(ValueError):
                writer.write("user-auth", "notes", "x")
            with self.assertRaises(ValueError):
                writer.write("../escape", "requirements", "x")
            with self.assertRaises(ValueError):
                writer.write_steering("roadmap", "x")

    def test_write_steering(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            path = SpecDocumentWriter(root).write_steering("tech", "# Tech\n")
            self.assertEqual(path, root / ".spec-workflow" / "steering" / "tech.md")
            self.assertTrue(SpecParser(root).get_steering_status().documents.tech)


class WorkflowStatusTests(unittest.TestCase):
    def _spec(self, requirements=True, design=True, tasks=True, progress=None) -> SpecData:
        return SpecData(
            name="x",
            phases=SpecPhases(
                requirements=PhaseStatus(exists=requirements),
                design=PhaseStatus(exists=design),
                tasks=PhaseStatus(exists=tasks),
            ),
            taskProgress=progress,
        )

    def test_phase_progression(self) -> None:
        self.assertEqual(derive_workflow_status(self._spec(requirements=False)), ("requirements", "requirements-needed"))
        self.assertEqual(derive_workflow_status(self._spec(design=False)), ("design", "design-needed"))
        self.assertEqual(derive_workflow_status(self._spec(tasks=False)), ("tasks", "tasks-needed"))
        self.assertEqual(
            derive_workflow_status(self._spec(progress=TaskProgress(total=3, completed=1, pending=2))),
            ("implementation", "implementing"),
        )
        self.assertEqual(
            derive_workflow_status(self._spec(progress=TaskProgress(total=2, completed=2, pending=0))),
            ("completed", "completed"),
        )
        self.assertEqual(
            derive_workflow_status(self._spec(progress=TaskProgress(total=2, completed=1, pending=0))),
            ("implementation", "ready-for-implementation"),
        )


if __name__ == "__main__":
    unittest.main()
