from datetime import datetime

import pytest
from django.db import OperationalError

from bitacora_app import store
from bitacora_app.llm import LLMConnectionError, LLMHTTPError, LLMRateLimited
from bitacora_app.models import Project, Task

from conftest import FIXED_NOW

pytestmark = pytest.mark.django_db


def create_project(name, **fields):
    return {"accion": "crear", "tipo": "proyecto", "proyecto": {"nombre": name, **fields}}


def create_task(title, project=None, **fields):
    payload = {"titulo": title, **fields}
    if project is not None:
        payload["proyecto"] = {"nombre": project}
    return {"accion": "crear", "tipo": "tarea", "tarea": payload}


def update(kind, key, payload):
    body = "proyecto" if kind == "proyecto" else "tarea"
    return {"accion": "actualizar", "tipo": kind, "nombre": key, body: payload}


def delete(kind, key):
    return {"accion": "eliminar", "tipo": kind, "nombre": key}


# --- creation and duplicates ---

def test_create_project(run):
    report = run(create_project("Alpha", descripcion="Website relaunch"))
    assert report.startswith("✅ Project created: Alpha")
    assert "📝 Website relaunch" in report
    project = Project.objects.get()
    assert project.name == "Alpha"
    assert project.duration_hours is None


def test_duplicate_project_name_is_rejected_case_insensitively(run):
    run(create_project("Alpha"))
    report = run(create_project("alpha"))
    assert report == "⚠️ A project named alpha already exists."
    assert Project.objects.count() == 1


def test_project_without_name_is_reported(run):
    report = run({"accion": "crear", "tipo": "proyecto", "proyecto": {"descripcion": "nameless"}})
    assert report == "⚠️ Project name is required."
    assert not Project.objects.exists()


def test_task_titles_are_unique_per_project_scope(run):
    run(create_project("Alpha"))
    run(create_project("Beta"))

    assert run(create_task("Design", "Alpha")) == "✅ Task created: Design in project Alpha"
    assert run(create_task("Design", "Beta")) == "✅ Task created: Design in project Beta"
    assert run(create_task("Design")) == "✅ Task created: Design (no project)"

    report = run(create_task("design", "ALPHA"))
    assert report == "⚠️ A task titled design already exists in project Alpha."
    assert Task.objects.filter(title__iexact="design").count() == 3


def test_ownerless_duplicate_is_rejected(run):
    run(create_task("Call supplier"))
    assert run(create_task("CALL SUPPLIER")) == "⚠️ A task titled CALL SUPPLIER already exists."


def test_unknown_project_reference_leaves_task_ownerless(run):
    report = run(create_task("Design", "Ghost"))
    assert report == "✅ Task created: Design (no project)"
    assert Task.objects.get().project is None


def test_task_with_both_dates_gets_computed_duration(run):
    run(create_project("Alpha"))
    run(create_task(
        "Design", "Alpha",
        fechaInicio="2026-03-15T08:00:00", fechaFin="2026-03-15T10:30:00", duracionHoras=9,
    ))
    assert Task.objects.get().duration_hours == 2.5
    assert Project.objects.get().duration_hours == 2.5


def test_stale_model_dates_are_replaced_with_now(run):
    run(create_task("Design", fechaInicio="2023-05-01T10:00:00", fechaFin="2027-01-01T00:00:00"))
    task = Task.objects.get()
    assert task.start_date == FIXED_NOW.replace(microsecond=0)
    assert task.end_date == datetime(2027, 1, 1)


def test_fenced_answer_is_unwrapped(run):
    report = run('```json\n{"accion": "crear", "tipo": "proyecto", "proyecto": {"nombre": "Alpha"}}\n```')
    assert report == "✅ Project created: Alpha"


def test_project_with_nested_tasks(run):
    report = run(create_project("Alpha", tareas=[
        {"titulo": "Design", "duracionHoras": 4},
        {"titulo": "Build", "duracionHoras": 8},
        {"titulo": "design", "duracionHoras": 1},
    ]))
    assert "✅ Project created: Alpha with 2 tasks" in report
    assert "⚠️ A task titled design already exists in project Alpha." in report
    project = Project.objects.get()
    assert project.duration_hours == 12.0
    assert sorted(project.tasks.values_list("title", flat=True)) == ["Build", "Design"]


def test_invalid_payload_rejects_only_that_action(run):
    report = run(create_task("Design", fechaInicio="tomorrow-ish"))
    assert report.startswith("⚠️ Invalid task data: fechaInicio")
    assert not Task.objects.exists()


# --- updates ---

def test_status_only_update_touches_nothing_else(run):
    run(create_project("Alpha"))
    run(create_task("Design", "Alpha", duracionHoras=5, fechaInicio="2026-03-15T08:00:00"))
    Project.objects.update(duration_hours=99)

    report = run(update("tarea", "Design", {"estado": "Completada"}))

    assert report == "✅ Task updated: Design"
    task = Task.objects.get()
    assert task.status == "Completada"
    assert task.title == "Design"
    assert task.start_date == datetime(2026, 3, 15, 8, 0)
    assert task.project.name == "Alpha"
    # Reconciliation ran again and healed the stale aggregate.
    assert task.project.duration_hours == 5.0


def test_same_status_ignoring_case_is_no_change(run):
    run(create_task("Design", estado="Completada"))
    report = run(update("tarea", "design", {"estado": "completada"}))
    assert report == "ℹ️ No changes made to task: Design"


def test_update_without_differences_is_reported_as_no_op(run):
    run(create_project("Alpha", descripcion="same"))
    report = run(update("proyecto", "ALPHA", {"nombre": "Alpha", "descripcion": "same"}))
    assert report == "ℹ️ No changes made to project: Alpha"


def test_duration_update_on_dated_task_is_no_change(run):
    run(create_task("Design", fechaInicio="2026-03-15T08:00:00", fechaFin="2026-03-15T10:00:00"))
    report = run(update("tarea", "Design", {"duracionHoras": 5}))
    assert report == "ℹ️ No changes made to task: Design"
    assert Task.objects.get().duration_hours == 2.0


def test_duration_update_applies_once_a_date_is_cleared(run):
    run(create_task("Design", fechaInicio="2026-03-15T08:00:00", fechaFin="2026-03-15T10:00:00"))
    report = run(update("tarea", "Design", {"fechaFin": None, "duracionHoras": 5}))
    assert report == "✅ Task updated: Design"
    assert Task.objects.get().duration_hours == 5.0


def test_project_rename_collision_aborts_whole_update(run):
    run(create_project("Alpha"))
    run(create_project("Beta", descripcion="old"))

    report = run(update("proyecto", "Beta", {"nombre": "ALPHA", "descripcion": "new"}))

    assert report == "⚠️ Another project is already named ALPHA."
    beta = Project.objects.get(name="Beta")
    assert beta.description == "old"


def test_project_rename_and_dates(run):
    run(create_project("Alpha"))
    report = run(update("proyecto", "alpha", {
        "nombre": "Alpha v2",
        "fechaInicio": "2026-03-01T00:00:00",
        "fechaFin": "2026-03-02T12:00:00",
    }))
    assert report == "✅ Project updated: Alpha v2"
    project = Project.objects.get()
    assert project.name == "Alpha v2"
    assert project.duration_hours == 36.0


def test_task_rename_collision_within_scope(run):
    run(create_project("Alpha"))
    run(create_task("Design", "Alpha"))
    run(create_task("Build", "Alpha", descripcion="old"))

    report = run(update("tarea", "Build", {"titulo": "design", "descripcion": "new"}))

    assert report == "⚠️ Another task is already titled design in project Alpha."
    assert Task.objects.get(title="Build").description == "old"


def test_task_move_to_other_project(run):
    run(create_project("Alpha"))
    run(create_project("Beta"))
    run(create_task("Design", "Alpha", duracionHoras=3))

    report = run(update("tarea", "Design", {"proyecto": {"nombre": "beta"}}))

    assert report == "✅ Task updated: Design"
    assert Project.objects.get(name="Alpha").duration_hours is None
    assert Project.objects.get(name="Beta").duration_hours == 3.0


def test_task_move_into_scope_with_same_title_is_rejected(run):
    run(create_task("Design", descripcion="ownerless"))
    run(create_project("Alpha"))
    run(create_task("Design", "Alpha"))

    # The first title match is the ownerless task.
    report = run(update("tarea", "Design", {"proyecto": {"nombre": "Alpha"}}))

    assert report == "⚠️ Another task is already titled Design in project Alpha."
    assert Task.objects.get(description="ownerless").project is None


def test_null_project_detaches_task(run):
    run(create_project("Alpha"))
    run(create_task("Design", "Alpha", duracionHoras=3))

    report = run(update("tarea", "Design", {"proyecto": None}))

    assert report == "✅ Task updated: Design"
    assert Task.objects.get().project is None
    assert Project.objects.get().duration_hours is None


def test_unresolvable_project_keeps_association(run):
    run(create_project("Alpha"))
    run(create_task("Design", "Alpha"))

    report = run(update("tarea", "Design", {"proyecto": {"nombre": "Ghost"}}))

    assert report == "ℹ️ No changes made to task: Design"
    assert Task.objects.get().project.name == "Alpha"


def test_update_missing_entity_reports_not_found(run):
    assert run(update("tarea", "Ghost", {"estado": "done"})) == "⚠️ Task not found: Ghost"
    assert run(update("proyecto", "Ghost", {"descripcion": "x"})) == "⚠️ Project not found: Ghost"


def test_update_without_key_is_reported(run):
    report = run({"accion": "actualizar", "tipo": "tarea", "tarea": {"estado": "done"}})
    assert report == "⚠️ Task name/title is required to update."


def test_update_without_payload_is_reported(run):
    run(create_project("Alpha"))
    report = run({"accion": "actualizar", "tipo": "proyecto", "nombre": "Alpha"})
    assert report == "⚠️ No data provided to update the project."


# --- deletes ---

def test_deleting_tasks_reaggregates_project(run):
    run(create_project("Alpha"))
    run(create_task("Research", "Alpha", duracionHoras=5))
    run(create_task("Build", "Alpha", duracionHoras=7))
    assert Project.objects.get().duration_hours == 12.0

    assert run(delete("tarea", "research")) == "✅ Task deleted: research"
    assert Project.objects.get().duration_hours == 7.0

    run(delete("tarea", "Build"))
    assert Project.objects.get().duration_hours is None


def test_deleting_project_removes_its_tasks(run):
    run(create_project("Alpha", tareas=[{"titulo": "Design"}]))
    run(create_task("Loose"))

    assert run(delete("proyecto", "ALPHA")) == "✅ Project deleted: ALPHA"
    assert not Project.objects.exists()
    assert list(Task.objects.values_list("title", flat=True)) == ["Loose"]


def test_delete_missing_entities(run):
    assert run(delete("proyecto", "Ghost")) == "⚠️ Project not found: Ghost"
    assert run(delete("tarea", "Ghost")) == "⚠️ Task not found: Ghost"
    assert run({"accion": "eliminar", "tipo": "proyecto"}) == "⚠️ Project name is required to delete."


# --- malformed answers ---

def test_non_json_answer_reports_raw_text_without_writes(run):
    report = run("I created the project for you!")
    assert report.startswith("⚠️ Could not process JSON:")
    assert report.endswith("Received JSON:\nI created the project for you!")
    assert not Project.objects.exists()
    assert not Task.objects.exists()


def test_unrecognized_action(run):
    assert run({"accion": "archivar", "tipo": "proyecto"}) == "⚠️ Unrecognized action or type."


# --- batches ---

MEETING = (
    "[Ana] 10:00 Welcome everyone, the agenda today is the website relaunch.\n"
    "[Luis] 10:05 I will prepare the designs by Friday.\n"
    "[Ana] 10:10 Marta, please review the hosting contract.\n"
    "[Marta] 10:12 Sure, and I will also call the supplier about the invoices.\n"
    "[Ana] 10:20 Great, let's meet again next week.\n"
    "[Luis] 10:22 Before we close: the budget review moves to the next meeting.\n"
)


def test_meeting_transcript_batch(interpreter, fake_llm):
    fake_llm.responses.append([
        create_task("Call supplier", observaciones="Owner: Marta"),
        create_task("Review hosting contract", "Website relaunch", duracionHoras=2),
        {"accion": "crear", "tipo": "tarea", "tarea": {"descripcion": "no title"}},
        create_project("Website relaunch", descripcion="Relaunch the site", tareas=[
            {"titulo": "Prepare designs", "duracionHoras": 8},
        ]),
    ])

    assert len(MEETING) > 300
    report = interpreter.interpret(MEETING)

    call = fake_llm.calls[0]
    assert call["temperature"] == 0.1
    assert call["max_tokens"] == 2000
    assert MEETING in call["prompt"]
    assert report.startswith("📋 **Meeting analysis complete:**")
    assert "✅ Project created: Website relaunch with 1 tasks" in report
    assert "✅ Task created: Review hosting contract in project Website relaunch" in report
    assert "✅ Task created: Call supplier (no project)" in report
    assert "   👤 Owner: Marta" in report
    assert "⚠️ Task title is required." in report
    assert "📊 **Summary:** 1 projects and 3 tasks processed from the meeting." in report

    project = Project.objects.get()
    assert project.duration_hours == 10.0
    assert Task.objects.filter(project__isnull=True).count() == 1


def test_batch_duplicates_do_not_stop_the_batch(run):
    run(create_project("Alpha"))
    report = run([create_project("alpha"), create_project("Gamma")])
    assert report.split("\n") == [
        "⚠️ A project named alpha already exists.",
        "✅ Project created: Gamma",
    ]


def test_empty_answer_is_reported(run):
    assert run([]) == "ℹ️ No actions found in the model answer."


def test_storage_error_rejects_only_that_action(run, monkeypatch):
    save_task = store.save_task

    def locked_for_boom(task, previous_project_id=None):
        if task.title == "Boom":
            raise OperationalError("database is locked")
        return save_task(task, previous_project_id=previous_project_id)

    monkeypatch.setattr(store, "save_task", locked_for_boom)

    report = run([create_project("Alpha"), create_task("Boom", "Alpha"), create_task("After", "Alpha")])

    assert report.split("\n") == [
        "✅ Project created: Alpha",
        "⚠️ Could not apply create task: database is locked",
        "✅ Task created: After in project Alpha",
    ]
    assert Project.objects.filter(name="Alpha").exists()
    assert list(Task.objects.values_list("title", flat=True)) == ["After"]


def test_rename_in_batch_drops_the_old_name(run):
    report = run([
        create_project("Alpha"),
        update("proyecto", "Alpha", {"nombre": "Gamma"}),
        create_task("Kickoff", "Alpha"),
        create_task("Plan", "gamma"),
    ])

    assert "✅ Project updated: Gamma" in report
    assert "✅ Task created: Kickoff (no project)" in report
    assert "✅ Task created: Plan in project Gamma" in report
    assert Task.objects.get(title="Kickoff").project is None


# --- model collaborator ---

def test_single_command_goes_through_model(interpreter, fake_llm):
    fake_llm.responses.append(create_project("Alpha"))

    report = interpreter.interpret("create project Alpha")

    assert report == "✅ Project created: Alpha"
    call = fake_llm.calls[0]
    assert call["temperature"] == 0.0
    assert call["max_tokens"] == 1000
    assert call["prompt"].endswith("create project Alpha")
    assert "2026-03-15T09:30:00" in call["system"]


def test_empty_message_skips_model(interpreter, fake_llm):
    assert interpreter.interpret("   ") == "⚠️ Empty message, nothing to do."
    assert fake_llm.calls == []


@pytest.mark.parametrize("error, expected", [
    (LLMRateLimited("Too Many Requests"), "⚠️ Language model usage limit exceeded."),
    (LLMHTTPError(500, "Internal Server Error"), "⚠️ Language model API error: 500 - Internal Server Error"),
    (LLMConnectionError("timed out"), "⚠️ Connection error with the language model: timed out"),
])
def test_upstream_errors_become_messages(interpreter, fake_llm, error, expected):
    fake_llm.responses.append(error)
    report = interpreter.interpret("create project Alpha")
    assert report.startswith(expected)
    assert not Project.objects.exists()
