"""
jobspine CLI — ``jobspine serve``, ``jobspine check-cron``, ``jobspine jobs``.
"""
