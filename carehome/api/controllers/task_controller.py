from flask import jsonify


def list_tasks(principal):
    # Task scheduling has no storage yet; the route exists so the capability is enforced.
    return jsonify({'tasks': [], 'message': 'Tasks feature coming soon'}), 200
