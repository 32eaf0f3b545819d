# fleetdeploy/services/deploy_pipeline.py
"""
Deploy pipeline: copy -> extract -> smoke test.

Each stage flips its flag on the SubjectStatus it is given only after the
stage is confirmed, so a failed run leaves the flags showing exactly how
far it got.
"""
from __future__ import annotations

import logging
import os

from fleetdeploy.models.results import DeployResult
from fleetdeploy.models.status import DeploySubject, SubjectStatus
from fleetdeploy.services.remote_commands import (
    EXTRACT_OK_MARKER,
    REMOTE_ARCHIVE_PATH,
    extract_command,
    version_command,
)
from fleetdeploy.vps.connection import TRANSPORT_ERRORS, RemoteSession

logger = logging.getLogger(__name__)


def reset_deploy_flags(status: SubjectStatus) -> None:
    status.deploy_archive_copied = False
    status.deploy_archive_extracted = False
    status.deploy_archive_tested = False
    status.deployed = False


def _copy_archive(session: RemoteSession, archive_path: str) -> bool:
    if not archive_path:
        logger.error("No archive configured (distr parameter is empty)")
        return False
    if not os.path.isfile(archive_path) or not os.access(archive_path, os.R_OK):
        logger.error("Archive is not a readable file: %s", archive_path)
        return False

    try:
        session.upload(archive_path, REMOTE_ARCHIVE_PATH)
    except TRANSPORT_ERRORS as e:
        logger.error("Archive transfer failed: %s", e)
        return False
    return True


def _extract_archive(session: RemoteSession) -> bool:
    try:
        out, err = session.run(extract_command())
    except TRANSPORT_ERRORS as e:
        logger.error("Archive extraction failed: %s", e)
        return False

    if EXTRACT_OK_MARKER not in out:
        logger.error("Archive extraction produced no confirmation (stderr=%r)", err)
        return False
    return True


def _test_binary(session: RemoteSession, subject: DeploySubject) -> bool:
    try:
        out, err = session.run(version_command(subject))
    except TRANSPORT_ERRORS as e:
        logger.error("Smoke test failed: %s", e)
        return False

    if not out.strip():
        logger.error("Smoke test produced no output (stderr=%r)", err)
        return False
    logger.info("Deployed %s reports: %s", subject.value, out.strip())
    return True


def deploy_subject(
    session: RemoteSession,
    subject: DeploySubject,
    archive_path: str,
    status: SubjectStatus,
) -> DeployResult:
    """Drive the whole pipeline from stage one, updating status in place."""
    reset_deploy_flags(status)

    if not _copy_archive(session, archive_path):
        return DeployResult.DEPLOY_COPY_FAILED
    status.deploy_archive_copied = True

    if not _extract_archive(session):
        return DeployResult.DEPLOY_EXTRACTION_FAILED
    status.deploy_archive_extracted = True

    if not _test_binary(session, subject):
        return DeployResult.DEPLOY_TEST_FAILED
    status.deploy_archive_tested = True

    status.deployed = True
    return DeployResult.OK
