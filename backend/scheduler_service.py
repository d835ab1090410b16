"""
Scheduler pour les tâches automatiques SamTech Voyages
- Factures échues -> en_retard (01h00)
- Sauvegardes automatiques selon la fréquence de chaque agence (02h00)
- Purge des sessions expirées (toutes les heures)
"""

import logging
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import db, now_iso

logger = logging.getLogger("scheduler")


def backup_due(frequence: str, now: datetime) -> bool:
    """quotidienne: chaque jour, hebdomadaire: le lundi, mensuelle: le 1er"""
    if frequence == "hebdomadaire":
        return now.weekday() == 0
    if frequence == "mensuelle":
        return now.day == 1
    return True


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="Europe/Paris")

    def start(self):
        """Démarre le scheduler avec toutes les tâches"""
        self.scheduler.add_job(
            self.mark_overdue_factures,
            CronTrigger(hour=1, minute=0),
            id="mark_overdue_factures",
            name="Factures en retard",
            replace_existing=True
        )

        self.scheduler.add_job(
            self.run_auto_backups,
            CronTrigger(hour=2, minute=0),
            id="auto_backups",
            name="Sauvegardes automatiques",
            replace_existing=True
        )

        self.scheduler.add_job(
            self.purge_expired_sessions,
            CronTrigger(minute=15),
            id="purge_sessions",
            name="Purge des sessions expirées",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("[SCHEDULER] Démarré avec succès")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("[SCHEDULER] Arrêté")

    # ==================== TÂCHES PLANIFIÉES ====================

    async def _report_failure(self, job: str, error: Exception, agence_id: str = None):
        from email_service import email_service
        from services.event_logger import log_event

        logger.error(f"[SCHEDULER] {job} en échec: {error}")
        await log_event(
            action="scheduler_failure",
            message=f"Tâche {job} en échec: {error}",
            level="error",
            module="scheduler",
            agence_id=agence_id
        )
        email_service.send_critical_alert(
            "SCHEDULER_FAILURE",
            f"La tâche planifiée {job} a échoué",
            {"job": job, "error": str(error), "agenceId": agence_id or "-"}
        )

    async def mark_overdue_factures(self) -> int:
        """Factures envoyées dont l'échéance est dépassée -> en_retard"""
        from services.billing import mark_overdue_factures
        from services.event_logger import log_event

        try:
            count = await mark_overdue_factures()
            if count:
                await log_event(
                    action="factures_overdue",
                    message=f"{count} facture(s) passée(s) en retard",
                    level="warning",
                    module="factures"
                )
            logger.info(f"[SCHEDULER] Factures en retard: {count}")
            return count
        except Exception as e:
            await self._report_failure("mark_overdue_factures", e)
            return 0

    async def run_auto_backups(self, now: datetime = None) -> int:
        """Sauvegarde des agences approuvées avec sauvegardeAuto activée"""
        from services.settings import backup_agence
        from services.event_logger import log_event

        now = now or datetime.now(timezone.utc)
        agences = await db.agences.find(
            {"statut": "approuve", "parametres.sauvegardeAuto": True},
            {"_id": 0, "id": 1, "nom": 1, "parametres.frequenceSauvegarde": 1}
        ).to_list(5000)

        done = 0
        for agence in agences:
            frequence = (agence.get("parametres") or {}).get("frequenceSauvegarde", "quotidienne")
            if not backup_due(frequence, now):
                continue
            try:
                backup = await backup_agence(agence["id"], trigger="automatique")
                await log_event(
                    action="backup_done",
                    message=f"Sauvegarde automatique ({backup['totalDocuments']} documents)",
                    level="success",
                    module="parametres",
                    entity_id=backup["id"],
                    agence_id=agence["id"]
                )
                done += 1
            except Exception as e:
                await self._report_failure("auto_backups", e, agence["id"])

        logger.info(f"[SCHEDULER] Sauvegardes automatiques: {done}/{len(agences)}")
        return done

    async def purge_expired_sessions(self) -> int:
        try:
            result = await db.sessions.delete_many({"expires_at": {"$lte": now_iso()}})
            if result.deleted_count:
                logger.info(f"[SCHEDULER] Sessions expirées purgées: {result.deleted_count}")
            return result.deleted_count
        except Exception as e:
            await self._report_failure("purge_sessions", e)
            return 0


# Instance globale
task_scheduler = TaskScheduler()
