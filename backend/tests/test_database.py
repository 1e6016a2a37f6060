"""
Tests for database.py - task CRUD, filtering, sorting, projects and conversation.
"""
import pytest
import sys
import os
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import NOW
from database import (
    create_task_db,
    update_task_db,
    delete_task_db,
    toggle_task_status_db,
    get_all_tasks,
    get_task_db,
    filter_by_search,
    filter_by_date_range,
    filter_by_date_preset,
    filter_by_priority,
    filter_by_status,
    sort_tasks,
    get_projects,
    add_project_db,
    get_conversation,
    save_conversation,
)
from models import Priority, Status, DEFAULT_PROJECT


def at(*args) -> int:
    """Epoch seconds for a local wall-clock time."""
    return int(datetime(*args).timestamp())


class TestTaskCRUD:
    """Tests for basic task create/read/update/delete operations."""

    def test_create_task_basic(self, test_db):
        """Create a simple task with defaults."""
        task = create_task_db("id-1", "Buy groceries")

        assert task.id == "id-1"
        assert task.name == "Buy groceries"
        assert task.due == 0
        assert task.tags == []
        assert task.project == DEFAULT_PROJECT
        assert task.priority == Priority.MEDIUM
        assert task.status == Status.PENDING
        assert task.note is None

    def test_create_task_with_due(self, test_db):
        """Due date survives a round trip through storage."""
        due = at(2026, 10, 15, 9, 0)
        create_task_db("id-1", "Doctor appointment", due=due)

        assert get_task_db("id-1").due == due

    def test_create_task_with_everything(self, test_db):
        """Tags, project, priority and note are stored."""
        create_task_db("id-1", "Workout", tags=["gym", "health"], project="Health",
                       priority=Priority.HIGH, note="Leg day")

        task = get_task_db("id-1")
        assert task.tags == ["gym", "health"]
        assert task.project == "Health"
        assert task.priority == Priority.HIGH
        assert task.note == "Leg day"

    def test_tags_are_capped(self, test_db):
        """At most five tags, each clipped to 20 characters, blanks dropped."""
        tags = ["a", "", "b", "c", "d", "e", "f", "x" * 30]
        task = create_task_db("id-1", "Tagged", tags=tags)

        assert task.tags == ["a", "b", "c", "d", "e"]
        task = create_task_db("id-2", "Long tag", tags=["x" * 30])
        assert task.tags == ["x" * 20]

    def test_get_all_tasks_empty(self, test_db):
        """Get tasks from empty database."""
        assert get_all_tasks() == []

    def test_get_all_tasks_by_project(self, test_db):
        """Tasks can be limited to one project."""
        create_task_db("id-1", "Task 1")
        create_task_db("id-2", "Task 2", project="Work")

        assert len(get_all_tasks()) == 2
        assert [t.id for t in get_all_tasks("Work")] == ["id-2"]

    def test_get_task_not_found(self, test_db):
        """Missing task returns None."""
        assert get_task_db("nonexistent") is None

    def test_update_task_name(self, test_db):
        """Update task name."""
        create_task_db("id-1", "Old name")
        updated = update_task_db("id-1", name="New name")

        assert updated.name == "New name"
        assert updated.status == Status.PENDING

    def test_update_due_and_clear(self, test_db):
        """Setting due to 0 clears it."""
        create_task_db("id-1", "Pay rent", due=at(2026, 11, 1, 9, 0))

        assert update_task_db("id-1", due=0).due == 0

    def test_update_enums_and_tags(self, test_db):
        """Priority, status and tags can be updated."""
        create_task_db("id-1", "Task")
        updated = update_task_db("id-1", priority=Priority.LOW, status=Status.DONE, tags=["home"])

        assert updated.priority == Priority.LOW
        assert updated.status == Status.DONE
        assert updated.tags == ["home"]

    def test_update_ignores_unknown_and_fixed_fields(self, test_db):
        """Unknown fields, id and created are not updated."""
        task = create_task_db("id-1", "Task")
        updated = update_task_db("id-1", bogus="x", id="other", created=0)

        assert updated.id == "id-1"
        assert updated.created == task.created

    def test_update_task_not_found(self, test_db):
        """Update nonexistent task returns None."""
        assert update_task_db("nonexistent", name="New name") is None

    def test_toggle_status(self, test_db):
        """Toggling flips between pending and done."""
        create_task_db("id-1", "Toggle me")

        assert toggle_task_status_db("id-1").status == Status.DONE
        assert toggle_task_status_db("id-1").status == Status.PENDING
        assert toggle_task_status_db("nonexistent") is None

    def test_delete_task(self, test_db):
        """Delete a task."""
        create_task_db("id-1", "Delete me")
        assert delete_task_db("id-1") is True
        assert get_all_tasks() == []

    def test_delete_task_not_found(self, test_db):
        """Delete nonexistent task returns False."""
        assert delete_task_db("nonexistent") is False


class TestSearch:
    """Tests for filter_by_search."""

    def test_matches_name_and_tags(self, test_db):
        """Search looks at the name and every tag, ignoring case."""
        create_task_db("id-1", "Buy groceries at store")
        create_task_db("id-2", "Call mom", tags=["Family"])
        create_task_db("id-3", "Write report")
        tasks = get_all_tasks()

        assert [t.id for t in filter_by_search(tasks, "GROCERIES")] == ["id-1"]
        assert [t.id for t in filter_by_search(tasks, "family")] == ["id-2"]
        assert filter_by_search(tasks, "nonexistent") == []

    def test_empty_term_keeps_all(self, test_db):
        """Empty or missing term returns every task."""
        create_task_db("id-1", "Task 1")
        create_task_db("id-2", "Task 2")
        tasks = get_all_tasks()

        assert len(filter_by_search(tasks, "")) == 2
        assert len(filter_by_search(tasks, None)) == 2


class TestDateFilters:
    """Tests for date range and preset filters. NOW is Wed 2026-10-14 15:20."""

    @pytest.fixture
    def dated_tasks(self, test_db):
        create_task_db("no-due", "No due date")
        create_task_db("yesterday", "Yesterday", due=at(2026, 10, 13, 9, 0))
        create_task_db("earlier-today", "Earlier today", due=at(2026, 10, 14, 9, 0))
        create_task_db("later-today", "Later today", due=at(2026, 10, 14, 18, 0))
        create_task_db("tomorrow", "Tomorrow", due=at(2026, 10, 15, 9, 0))
        create_task_db("saturday", "Saturday", due=at(2026, 10, 17, 23, 0))
        create_task_db("next-sunday", "Next Sunday", due=at(2026, 10, 18, 9, 0))
        create_task_db("next-saturday", "Next Saturday", due=at(2026, 10, 24, 9, 0))
        create_task_db("far", "Far away", due=at(2026, 12, 25, 9, 0))
        create_task_db("done-late", "Done but late", due=at(2026, 10, 1, 9, 0))
        update_task_db("done-late", status=Status.DONE)
        return get_all_tasks()

    def ids(self, tasks):
        return {t.id for t in tasks}

    def test_range_inclusive(self, dated_tasks):
        """Both bounds are inclusive; tasks without due never match."""
        result = filter_by_date_range(dated_tasks, at(2026, 10, 14, 9, 0), at(2026, 10, 15, 9, 0))
        assert self.ids(result) == {"earlier-today", "later-today", "tomorrow"}

    def test_range_unbounded(self, dated_tasks):
        """0 leaves a side open."""
        assert self.ids(filter_by_date_range(dated_tasks, end=at(2026, 10, 2, 0, 0))) == {"done-late"}
        assert self.ids(filter_by_date_range(dated_tasks, start=at(2026, 12, 1, 0, 0))) == {"far"}
        assert len(filter_by_date_range(dated_tasks)) == len(dated_tasks) - 1

    def test_today(self, dated_tasks):
        """today covers the whole calendar day."""
        assert self.ids(filter_by_date_preset(dated_tasks, "today", NOW)) == {"earlier-today", "later-today"}

    def test_tomorrow(self, dated_tasks):
        """tomorrow covers the next calendar day."""
        assert self.ids(filter_by_date_preset(dated_tasks, "tomorrow", NOW)) == {"tomorrow"}

    def test_this_week(self, dated_tasks):
        """this_week runs from today through Saturday."""
        assert self.ids(filter_by_date_preset(dated_tasks, "this_week", NOW)) == {
            "earlier-today", "later-today", "tomorrow", "saturday"
        }

    def test_next_week(self, dated_tasks):
        """next_week is the following Sunday through Saturday."""
        assert self.ids(filter_by_date_preset(dated_tasks, "next_week", NOW)) == {"next-sunday", "next-saturday"}

    def test_overdue(self, dated_tasks):
        """overdue is pending and due before now."""
        assert self.ids(filter_by_date_preset(dated_tasks, "OVERDUE", NOW)) == {"yesterday", "earlier-today"}

    def test_unknown_preset(self, dated_tasks):
        """Unknown presets raise ValueError."""
        with pytest.raises(ValueError):
            filter_by_date_preset(dated_tasks, "someday", NOW)


class TestPriorityStatusFilters:
    """Tests for filter_by_priority and filter_by_status."""

    def test_filters(self, test_db):
        create_task_db("id-1", "High", priority=Priority.HIGH)
        create_task_db("id-2", "Low", priority=Priority.LOW)
        update_task_db("id-2", status=Status.DONE)
        tasks = get_all_tasks()

        assert [t.id for t in filter_by_priority(tasks, Priority.HIGH)] == ["id-1"]
        assert [t.id for t in filter_by_status(tasks, Status.DONE)] == ["id-2"]
        assert [t.id for t in filter_by_status(tasks, Status.PENDING)] == ["id-1"]


class TestSorting:
    """Tests for sort_tasks."""

    def test_sort_by_name(self, test_db):
        create_task_db("id-1", "banana")
        create_task_db("id-2", "apple")

        assert [t.name for t in sort_tasks(get_all_tasks(), "name")] == ["apple", "banana"]

    def test_sort_by_due(self, test_db):
        """No due date goes last; ties put higher priority first."""
        create_task_db("none", "No due")
        create_task_db("late", "Late", due=at(2026, 10, 20, 9, 0))
        create_task_db("early-low", "Early low", due=at(2026, 10, 15, 9, 0), priority=Priority.LOW)
        create_task_db("early-high", "Early high", due=at(2026, 10, 15, 9, 0), priority=Priority.HIGH)

        assert [t.id for t in sort_tasks(get_all_tasks(), "due")] == ["early-high", "early-low", "late", "none"]

    def test_sort_by_creation(self, test_db):
        create_task_db("second", "Second", created=at(2026, 10, 2, 9, 0))
        create_task_db("first", "First", created=at(2026, 10, 1, 9, 0))

        assert [t.id for t in sort_tasks(get_all_tasks(), "creation")] == ["first", "second"]

    def test_sort_invalid_field(self, test_db):
        with pytest.raises(ValueError):
            sort_tasks([], "priority")


class TestProjects:
    """Tests for project operations."""

    def test_default_project_always_present(self, test_db):
        assert get_projects() == [DEFAULT_PROJECT]

    def test_add_project(self, test_db):
        """New projects are listed after default in creation order."""
        assert add_project_db("Health") is True
        assert add_project_db("Work") is True

        assert get_projects() == [DEFAULT_PROJECT, "Health", "Work"]

    def test_add_duplicate_project(self, test_db):
        """Duplicates and the default project are rejected."""
        add_project_db("Health")

        assert add_project_db("Health") is False
        assert add_project_db(DEFAULT_PROJECT) is False
        assert add_project_db("   ") is False


class TestConversation:
    """Tests for conversation persistence."""

    def test_empty_conversation(self, test_db):
        assert get_conversation() == []

    def test_save_and_replace(self, test_db):
        """Saving replaces the stored messages."""
        save_conversation([{"role": "user", "content": "hi"}])
        save_conversation([
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ])

        assert get_conversation() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
