"""Wiring of settings into the pipeline components."""

from __future__ import annotations

from dataclasses import dataclass

from pilapse.config import AppSettings
from pilapse.notify import LoggingNotifier, Mailer, MsmtpMailer, NotificationSink, NullMailer, SlackNotifier
from pilapse.remote import RcloneRemote, RemoteStore
from pilapse.retry import RetryPolicy
from pilapse.service import (
    CaptureController,
    CapturePipeline,
    EndOfDayReconciler,
    ImageCounter,
    LocalBackupManager,
    MontageBuilder,
    PhotoLedger,
    SequenceAuthority,
    ThumbnailBuilder,
    UploadManager,
)
from pilapse.storage import RemovableVolume


@dataclass(frozen=True)
class Services:
    settings: AppSettings
    remote: RemoteStore
    volume: RemovableVolume
    notifier: NotificationSink
    mailer: Mailer
    ledger: PhotoLedger
    uploader: UploadManager
    backup: LocalBackupManager
    thumbnails: ThumbnailBuilder
    counter: ImageCounter
    pipeline: CapturePipeline
    montage: MontageBuilder
    reconciler: EndOfDayReconciler


def build_notifier(settings: AppSettings) -> NotificationSink:
    if not settings.slack_webhook:
        return LoggingNotifier(settings.project_name)
    return SlackNotifier(
        settings.slack_webhook,
        settings.project_name,
        user_id=settings.slack_user_id,
        cooldown_file=settings.mention_cooldown_file,
        cooldown_seconds=settings.mention_cooldown_seconds,
    )


def build_services(
    settings: AppSettings,
    remote: RemoteStore | None = None,
    volume: RemovableVolume | None = None,
    notifier: NotificationSink | None = None,
    mailer: Mailer | None = None,
) -> Services:
    """Construct every component from ``settings``; collaborators may be injected."""
    remote = remote or RcloneRemote(settings.remote_name, retries=settings.transport_retries)
    volume = volume or RemovableVolume(settings.usb_backup_label, settings.mount_point)
    notifier = notifier or build_notifier(settings)
    if mailer is None:
        mailer = MsmtpMailer(settings.email_recipients) if settings.email_recipients else NullMailer()

    ledger = PhotoLedger(settings.resolved_database_url)
    uploader = UploadManager(remote, notifier, settings.project_name)
    backup = LocalBackupManager(settings.backup_dir, notifier)
    thumbnails = ThumbnailBuilder(settings.thumbnail_dir, notifier)
    counter = ImageCounter(remote, volume, settings.project_name)

    authority = SequenceAuthority(
        settings.counter_file,
        volume,
        remote,
        settings.project_name,
        scan_directories=(settings.backup_dir, settings.photo_dir / settings.project_name),
    )
    controller = CaptureController(
        settings.project_name,
        notifier,
        timeout_sec=settings.camera_timeout_sec,
        retry_policy=RetryPolicy(max_attempts=2, backoff_sec=settings.capture_retry_backoff_sec),
    )
    pipeline = CapturePipeline(
        authority,
        controller,
        uploader,
        thumbnails,
        backup,
        ledger,
        photo_dir=settings.photo_dir,
        project_name=settings.project_name,
        lock_file=settings.lock_file,
    )
    montage = MontageBuilder(
        settings.thumbnail_dir,
        settings.work_dir,
        remote,
        volume,
        notifier,
        mailer,
        counter,
        settings.project_name,
    )
    reconciler = EndOfDayReconciler(
        settings.backup_dir,
        uploader,
        remote,
        volume,
        notifier,
        ledger,
        settings.project_name,
        log_file=settings.log_file,
    )
    return Services(
        settings=settings,
        remote=remote,
        volume=volume,
        notifier=notifier,
        mailer=mailer,
        ledger=ledger,
        uploader=uploader,
        backup=backup,
        thumbnails=thumbnails,
        counter=counter,
        pipeline=pipeline,
        montage=montage,
        reconciler=reconciler,
    )
