"""
Sync Service: the background job that pushes a campaign set to Reddit Ads.

Flow per job:
  1. Resolve the set and the team's ad account, decrypt the access token.
  2. Mark the set as syncing and load its tree.
  3. Push every non-draft campaign (ad groups and ads included). Ads the
     preview would skip are left out; fallback ads are sent truncated.
  4. Record a SyncRecord per campaign and the final set status.

Progress is published to the event broker as it happens. The broker's done
signal for the job is sent exactly once, whether the job succeeds or raises.
"""

import logging
import uuid
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adsync.config import get_settings
from adsync.crypto import TokenCipher
from adsync.database import async_session
from adsync.errors import ApiError
from adsync.models import CampaignSet, CampaignSetStatus, CampaignStatus, Platform, SyncStatus
from adsync.schemas.hierarchy import CampaignNode, CampaignSetTree
from adsync.services.campaign_set_service import (
    get_campaign_set_for_team,
    get_team_ad_account,
    load_campaign_set_tree,
    record_campaign_sync,
    save_platform_ids,
    set_sync_state,
)
from adsync.services.job_queue import Job
from adsync.services.reddit_client import (
    RedditAdsClient,
    ad_group_payload,
    ad_payload,
    campaign_payload,
)
from adsync.services.sync_events import SyncEventBroker, SyncProgressEvent
from adsync.services.sync_preview import ClassifiedAds, build_error_index, classify_ads
from adsync.services.validation.service import SyncValidationService
from adsync.utils import safe_error_detail, utcnow

logger = logging.getLogger(__name__)

SYNC_CAMPAIGN_SET_JOB = "sync-campaign-set"

ClientFactory = Callable[[str, str], RedditAdsClient]
SessionFactory = Callable[[], AsyncSession]


class SyncJobError(Exception):
    pass


def completion_summary(result: Optional[dict[str, Any]]) -> dict[str, int]:
    """Counts sent with the `completed` event, live or replayed to a late subscriber."""
    result = result or {}
    synced, failed, skipped = (int(result.get(k, 0)) for k in ("synced", "failed", "skipped"))
    return {"synced": synced, "failed": failed, "skipped": skipped, "total": int(result.get("total", synced + failed + skipped))}


def default_client_factory(access_token: str, account_id: str) -> RedditAdsClient:
    settings = get_settings()
    return RedditAdsClient(
        access_token,
        account_id,
        base_url=settings.reddit_ads_api_url,
        timeout=settings.reddit_request_timeout,
    )


class CampaignSetSyncHandler:
    def __init__(
        self,
        broker: SyncEventBroker,
        session_factory: SessionFactory = async_session,
        client_factory: ClientFactory = default_client_factory,
        cipher: Optional[TokenCipher] = None,
        validation_service: Optional[SyncValidationService] = None,
    ):
        self.broker = broker
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.cipher = cipher or TokenCipher.from_settings()
        self.validation_service = validation_service or SyncValidationService()

    async def __call__(self, job: Job) -> dict[str, Any]:
        set_id = str(job.data["campaignSetId"])

        def emit(event_type: str, data: dict[str, Any]) -> None:
            self.broker.publish(SyncProgressEvent(
                type=event_type, job_id=job.id, campaign_set_id=set_id, data=data,
            ))

        try:
            emit("progress", {"message": "Starting sync", "synced": 0, "failed": 0, "skipped": 0, "total": 0})
            result = await self._run(job, emit)
            emit("completed", completion_summary(result))
            logger.info(
                f"[Sync] Campaign set {set_id} job {job.id}: {result['synced']} synced, "
                f"{result['failed']} failed, {result['skipped']} skipped"
            )
            return result
        except (SyncJobError, ApiError) as e:
            logger.error(f"[Sync] Campaign set {set_id} job {job.id} failed: {e}")
            emit("error", {"error": str(e)})
            await self._mark_set_failed(set_id)
            raise
        except Exception as e:
            # Unexpected failures reach subscribers without internals
            emit("error", {"error": safe_error_detail(e, "Sync failed due to an internal error")})
            await self._mark_set_failed(set_id)
            raise
        finally:
            self.broker.close(job.id)

    async def _run(self, job: Job, emit) -> dict[str, Any]:
        set_id = uuid.UUID(str(job.data["campaignSetId"]))
        team_id = uuid.UUID(str(job.data["teamId"]))
        platform = job.data.get("platform", Platform.REDDIT.value)
        if platform != Platform.REDDIT.value:
            raise SyncJobError(f"Unsupported platform: {platform}")

        async with self.session_factory() as db:
            campaign_set = await get_campaign_set_for_team(db, set_id, team_id)
            account = await get_team_ad_account(db, team_id, str(job.data.get("adAccountId") or ""))
            if account is None:
                raise SyncJobError("Invalid or unauthorized ad account")
            access_token = self.cipher.decrypt(account.access_token)
            if not access_token:
                raise SyncJobError(f"No OAuth tokens available for ad account {account.id}")
            account_id = account.account_id

            await set_sync_state(db, set_id, SyncStatus.SYNCING)
            await db.commit()
            tree = await load_campaign_set_tree(db, campaign_set, self.session_factory)

        funding_instrument_id = job.data.get("fundingInstrumentId") or tree.config.funding_instrument_id
        classified = self._classify(tree)
        skipped_ads = {a.ad_id for a in classified.skipped}
        truncated_ads = {a.ad_id for a in classified.fallback}

        synced = failed = skipped = 0
        errors: list[dict[str, str]] = []
        total = len(tree.campaigns)

        async with self.client_factory(access_token, account_id) as client:
            for campaign in tree.campaigns:
                if campaign.status == CampaignStatus.DRAFT:
                    skipped += 1
                    continue
                if campaign.platform != Platform.REDDIT:
                    skipped += 1
                    errors.append({
                        "campaignId": campaign.id,
                        "message": f"No adapter available for platform: {campaign.platform.value}",
                    })
                    continue

                try:
                    platform_id = await self._push_campaign(
                        client, campaign, funding_instrument_id, skipped_ads, truncated_ads,
                    )
                except Exception as e:
                    failed += 1
                    errors.append({"campaignId": campaign.id, "message": str(e)})
                    logger.warning(f"[Sync] Campaign {campaign.id} failed: {e}")
                    await self._record(campaign, SyncStatus.FAILED, error=str(e))
                    emit("campaign_failed", {"campaignId": campaign.id, "name": campaign.name, "error": str(e)})
                else:
                    synced += 1
                    await self._record(campaign, SyncStatus.SYNCED, platform_id=platform_id)
                    emit("campaign_synced", {
                        "campaignId": campaign.id, "name": campaign.name, "platformCampaignId": platform_id,
                    })
                emit("progress", {"synced": synced, "failed": failed, "skipped": skipped, "total": total})

        async with self.session_factory() as db:
            await set_sync_state(
                db,
                set_id,
                SyncStatus.SYNCED if failed == 0 else SyncStatus.FAILED,
                status=CampaignSetStatus.ACTIVE if failed == 0 else CampaignSetStatus.ERROR,
                synced_at=utcnow(),
            )
            await db.commit()

        return {"synced": synced, "failed": failed, "skipped": skipped, "total": total, "errors": errors}

    def _classify(self, tree: CampaignSetTree) -> ClassifiedAds:
        result = self.validation_service.validate_campaign_set(tree, Platform.REDDIT)
        return classify_ads(tree, tree.config.fallback_strategy, build_error_index(result))

    async def _push_campaign(
        self,
        client: RedditAdsClient,
        campaign: CampaignNode,
        funding_instrument_id: Optional[str],
        skipped_ads: set[str],
        truncated_ads: set[str],
    ) -> str:
        """Create or update the campaign, then each of its ad groups and ads.

        Entities that already carry a platform id are updated in place; the rest
        are created and their new ids stored.
        """
        payload = campaign_payload(campaign, funding_instrument_id)
        platform_campaign_id = campaign.platform_campaign_id
        if platform_campaign_id:
            await client.update_campaign(platform_campaign_id, payload)
        else:
            platform_campaign_id = await client.create_campaign(payload)

        ad_group_ids: dict[str, str] = {}
        ad_ids: dict[str, str] = {}
        for ad_group in campaign.ad_groups:
            group_payload = ad_group_payload(ad_group, platform_campaign_id)
            platform_ad_group_id = ad_group.platform_ad_group_id
            if platform_ad_group_id:
                await client.update_ad_group(platform_ad_group_id, group_payload)
            else:
                platform_ad_group_id = await client.create_ad_group(group_payload)
                ad_group_ids[ad_group.id] = platform_ad_group_id

            for ad in ad_group.ads:
                if ad.id in skipped_ads:
                    continue
                payload = ad_payload(ad, platform_ad_group_id, truncate=ad.id in truncated_ads)
                if ad.platform_ad_id:
                    await client.update_ad(ad.platform_ad_id, payload)
                else:
                    ad_ids[ad.id] = await client.create_ad(payload)

        if ad_group_ids or ad_ids:
            async with self.session_factory() as db:
                await save_platform_ids(db, ad_group_ids, ad_ids)
                await db.commit()
        return platform_campaign_id

    async def _record(
        self, campaign: CampaignNode, status: SyncStatus, platform_id: Optional[str] = None, error: Optional[str] = None,
    ) -> None:
        async with self.session_factory() as db:
            await record_campaign_sync(
                db, uuid.UUID(campaign.id), campaign.platform, status, platform_id=platform_id, error=error,
            )
            await db.commit()

    async def _mark_set_failed(self, set_id: str) -> None:
        try:
            async with self.session_factory() as db:
                await set_sync_state(db, uuid.UUID(set_id), SyncStatus.FAILED, status=CampaignSetStatus.ERROR)
                await db.commit()
        except Exception as e:
            logger.error(f"[Sync] Could not mark campaign set {set_id} as failed: {e}")
