from flask import Blueprint, jsonify, g, request

from models import db
from models.courses import Course
from models.tasks import Task, Subtask
from classes.validators import parse_date
from utils.helpers import commit_or_error, parse_int
from utils.utils import login_required


tasks_bp = Blueprint("tasks", __name__)

UPDATABLE_FIELDS = ("title", "description", "priority", "status")


def _get_own_task(task_id):
    return Task.query.filter_by(id=task_id, learner_id=g.user.get("user_id")).first()


def _resolve_course_id(value):
    if value in (None, ""):
        return None
    course_id = parse_int(value, "course_id")
    if not db.session.get(Course, course_id):
        raise ValueError("Course not found.")
    return course_id


# Fetch tasks for the authenticated user
@tasks_bp.route("/", methods=["GET"], strict_slashes=False)
@login_required
def get_tasks():
    tasks = (
        Task.query
        .filter_by(learner_id=g.user.get("user_id"))
        .order_by(Task.created_at.desc(), Task.id.desc())
        .all()
    )
    return jsonify({"tasks": [t.to_dict() for t in tasks]}), 200


# Create new task
@tasks_bp.route("/", methods=["POST"], strict_slashes=False)
@login_required
def create_task():
    data = request.get_json(silent=True) or {}
    if not data.get("title"):
        return jsonify({"error": "Title is required"}), 400

    try:
        task = Task(
            learner_id=g.user.get("user_id"),
            title=data.get("title"),
            description=data.get("description") or None,
            course_id=_resolve_course_id(data.get("course_id")),
            priority=data.get("priority") or "medium",
            due_date=parse_date("due_date", data.get("due_date")),
            status="todo",
        )
        for subtask_title in data.get("subtasks") or []:
            task.subtasks.append(Subtask(title=subtask_title))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    db.session.add(task)
    error = commit_or_error("Failed to create task")
    if error:
        return error
    return jsonify({"task": task.to_dict()}), 201


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@login_required
def get_task(task_id):
    task = _get_own_task(task_id)
    if not task:
        return jsonify({"error": "Task not found"}), 404
    return jsonify({"task": task.to_dict()}), 200


# Update task fields (status moves on the board go through here)
@tasks_bp.route("/<int:task_id>", methods=["PATCH"])
@login_required
def update_task(task_id):
    task = _get_own_task(task_id)
    if not task:
        return jsonify({"error": "Task not found"}), 404

    data = request.get_json(silent=True) or {}
    try:
        for field in UPDATABLE_FIELDS:
            if field in data:
                setattr(task, field, data[field])
        if "due_date" in data:
            task.due_date = parse_date("due_date", data["due_date"])
        if "course_id" in data:
            task.course_id = _resolve_course_id(data["course_id"])
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to update task")
    if error:
        return error
    return jsonify({"task": task.to_dict()}), 200


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    task = _get_own_task(task_id)
    if not task:
        return jsonify({"error": "Task not found"}), 404

    db.session.delete(task)
    error = commit_or_error("Failed to delete task")
    if error:
        return error
    return jsonify({"success": True}), 200


#                                                         SUBTASKS
#_____________________________________________________________________________________________________________
# Add one subtask (title) or several at once (subtasks)
@tasks_bp.route("/<int:task_id>/subtasks", methods=["POST"])
@login_required
def add_subtasks(task_id):
    task = _get_own_task(task_id)
    if not task:
        return jsonify({"error": "Task not found"}), 404

    data = request.get_json(silent=True) or {}
    titles = data.get("subtasks")
    if titles is None:
        titles = [data.get("title")] if data.get("title") else []
    if not isinstance(titles, list) or not titles:
        return jsonify({"error": "A subtask title is required"}), 400

    try:
        for title in titles:
            task.subtasks.append(Subtask(title=title))
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to add subtask")
    if error:
        return error
    return jsonify({"task": task.to_dict()}), 201


@tasks_bp.route("/<int:task_id>/subtasks/<int:subtask_id>", methods=["PATCH"])
@login_required
def update_subtask(task_id, subtask_id):
    task = _get_own_task(task_id)
    if not task:
        return jsonify({"error": "Task not found"}), 404

    subtask = Subtask.query.filter_by(id=subtask_id, task_id=task.id).first()
    if not subtask:
        return jsonify({"error": "Subtask not found"}), 404

    data = request.get_json(silent=True) or {}
    try:
        if "completed" in data:
            subtask.completed = bool(data["completed"])
        if "title" in data:
            subtask.title = data["title"]
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400

    error = commit_or_error("Failed to update subtask")
    if error:
        return error
    return jsonify({"task": task.to_dict()}), 200


@tasks_bp.route("/<int:task_id>/subtasks/<int:subtask_id>", methods=["DELETE"])
@login_required
def delete_subtask(task_id, subtask_id):
    task = _get_own_task(task_id)
    if not task:
        return jsonify({"error": "Task not found"}), 404

    subtask = Subtask.query.filter_by(id=subtask_id, task_id=task.id).first()
    if not subtask:
        return jsonify({"error": "Subtask not found"}), 404

    db.session.delete(subtask)
    error = commit_or_error("Failed to delete subtask")
    if error:
        return error
    return jsonify({"task": task.to_dict()}), 200
