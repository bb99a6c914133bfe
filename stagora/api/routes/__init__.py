"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from stagora.api.routes.auth_routes import router as auth_router
from stagora.api.routes.company_routes import router as company_router
from stagora.api.routes.student_routes import router as student_router
from stagora.api.routes.post_routes import router as post_router
from stagora.api.routes.application_routes import router as application_router
from stagora.api.routes.forum_routes import router as forum_router
from stagora.api.routes.report_routes import router as report_router
from stagora.api.routes.mailer_routes import router as mailer_router
from stagora.api.routes.file_routes import router as file_router
from stagora.api.routes.stats_routes import router as stats_router
from stagora.api.routes.notification_routes import router as notification_router
from stagora.api.routes.user_routes import router as user_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(company_router)
api_router.include_router(student_router)
api_router.include_router(post_router)
api_router.include_router(application_router)
api_router.include_router(forum_router)
api_router.include_router(report_router)
api_router.include_router(mailer_router)
api_router.include_router(file_router)
api_router.include_router(stats_router)
api_router.include_router(notification_router)
api_router.include_router(user_router)
