import asyncio
import json
import logging
import os
from typing import Optional

import click

from price_tag.config.settings import EXPORT_PROFILES, AppConfig, load_config
from price_tag.errors import ConfigError, ExportFailure, NotAuthenticated, ParseFailure, RecordNotFound, StorageFailure
from price_tag.export.pipeline import ExportFormat, ExportOptions, ExportPipeline
from price_tag.export.surface import DesignSurface, render_thumbnail
from price_tag.models.design import DesignRecord, SavedLabel, parse_design_payload
from price_tag.models.settings import HistoryRecord
from price_tag.storage.local_store import HISTORY_LIMIT, LocalStore
from price_tag.storage.remote_store import RemoteStore
from price_tag.storage.sync import Synchronizer


def _run(coro):
    """Run a coroutine, turning store/export errors into a message and exit code 1"""
    try:
        return asyncio.run(coro)
    except NotAuthenticated as e:
        click.echo(f"🔒 Not signed in to the cloud: {e}. Run `login` or work local-only.")
    except StorageFailure as e:
        click.echo(f"❌ {e.store.capitalize()} storage error: {e}")
    except ExportFailure as e:
        click.echo(f"❌ Export failed: {e}")
    except (ParseFailure, RecordNotFound) as e:
        click.echo(f"❌ {e}")
    raise SystemExit(1)


async def _with_sync(config: AppConfig, action):
    remote = RemoteStore.from_config(config)
    try:
        return await action(Synchronizer(LocalStore(config.data_dir), remote))
    finally:
        if remote is not None:
            await remote.aclose()


async def _find_design(sync: Synchronizer, design_id: str) -> DesignRecord:
    record = await sync.local.get(design_id)
    if record is None and sync.remote is not None:
        try:
            record = await sync.remote.get(design_id)
        except NotAuthenticated:
            record = None
    if record is None:
        raise RecordNotFound(design_id)
    return record


@click.group(help="Label designs: list, sync with the cloud and export print-ready files.")
@click.option("--data-dir", "data_dir", type=click.Path(file_okay=False), default=None, help="Local store directory (overrides PRICE_TAG_DATA_DIR)")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: Optional[str], verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    overrides = {"data_dir": data_dir} if data_dir else {}
    try:
        ctx.obj = load_config(**overrides)
    except ConfigError as e:
        click.echo(f"❌ {e}")
        raise SystemExit(1)


@main.command("list", help="List local and cloud designs as one view (cloud wins on duplicates).")
@click.pass_obj
def list_designs(config: AppConfig):
    merged = _run(_with_sync(config, lambda sync: sync.load_merged()))
    if merged.remote_error:
        click.echo(f"⚠️  Showing local designs only: {merged.remote_error}")
    if not merged.designs:
        click.echo("No designs yet.")
        return
    for record in merged.designs:
        updated = record.updated_at.strftime("%Y-%m-%d %H:%M") if record.updated_at else "-"
        click.echo(f"{record.key:<40} {record.display_name:<24} {record.size.width:g}x{record.size.height:g}mm  {updated}")
    click.echo(f"📚 {len(merged.designs)} designs")


@main.command(help="Print one design as JSON.")
@click.argument("design_id")
@click.pass_obj
def show(config: AppConfig, design_id: str):
    record = _run(_with_sync(config, lambda sync: _find_design(sync, design_id)))
    click.echo(json.dumps(record.to_payload(), ensure_ascii=False, indent=2))


@main.command(help="Upload every local design to the cloud.")
@click.option("--concurrency", type=click.IntRange(min=1), default=1, show_default=True, help="Uploads in flight at once")
@click.pass_obj
def sync(config: AppConfig, concurrency: int):
    if not config.remote_configured:
        click.echo("❌ Cloud store not configured (set SUPABASE_URL and SUPABASE_ANON_KEY).")
        raise SystemExit(1)
    tally = _run(_with_sync(config, lambda s: s.sync_local_to_remote(concurrency=concurrency)))
    click.echo(f"✅ Synced {tally.succeeded} designs, {tally.failed} failed")
    for key, error in tally.errors.items():
        click.echo(f"   {key}: {error}")
    if tally.failed:
        raise SystemExit(1)


@main.command(help="Export a design to PNG, JPG or PDF.")
@click.argument("design_id")
@click.option("--format", "fmt", type=click.Choice([f.value for f in ExportFormat], case_sensitive=False), default="png", show_default=True, help="Output format")
@click.option("--profile", type=click.Choice(list(EXPORT_PROFILES.keys())), default="print", show_default=True, help="Resolution/quality preset")
@click.option("--dpi", type=float, default=None, help="Override the profile resolution")
@click.option("--quality", type=click.FloatRange(0, 1), default=None, help="JPG quality 0-1 (overrides profile)")
@click.option("--out-dir", "out_dir", type=click.Path(file_okay=False), default="outputs", show_default=True, help="Directory for the exported file")
@click.option("--font", "font_path", type=click.Path(dir_okay=False, exists=True), default=None, help="TrueType font used to paint text")
@click.pass_obj
def export(config: AppConfig, design_id: str, fmt: str, profile: str, dpi: Optional[float], quality: Optional[float], out_dir: str, font_path: Optional[str]):
    async def action(sync: Synchronizer):
        record = await _find_design(sync, design_id)
        overrides = {"format": fmt.lower(), "product_name": record.product.name or record.display_name}
        if dpi is not None:
            overrides["dpi"] = dpi
        if quality is not None:
            overrides["quality"] = quality
        options = ExportOptions.for_profile(profile, **overrides)
        artifact = await ExportPipeline().export(DesignSurface(record, font_path=font_path), options)
        await sync.local.add_history(HistoryRecord(
            template_id=record.id,
            product_name=record.product.name,
            format=artifact.format.value,
            filename=artifact.filename,
        ))
        return artifact

    artifact = _run(_with_sync(config, action))
    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, artifact.filename)
    with open(out_path, "wb") as f:
        f.write(artifact.data)
    click.echo(f"✅ Exported {out_path} ({artifact.size} bytes)")


@main.command("import-legacy", help="Import designs or legacy saved labels from a JSON file.")
@click.argument("path", type=click.Path(dir_okay=False, exists=True))
@click.pass_obj
def import_legacy(config: AppConfig, path: str):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    rows = data if isinstance(data, list) else [data]

    async def action(sync: Synchronizer):
        imported, skipped = 0, 0
        for row in rows:
            try:
                record = parse_design_payload(row)
            except ParseFailure as e:
                click.echo(f"⚠️  Skipped: {e}")
                skipped += 1
                continue
            await sync.local.put(record)
            imported += 1
        return imported, skipped

    imported, skipped = _run(_with_sync(config, action))
    click.echo(f"✅ Imported {imported} designs, skipped {skipped}")


@main.command("export-legacy", help="Write local designs as saved-label rows with PNG thumbnails.")
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_obj
def export_legacy(config: AppConfig, path: str):
    def flatten(records):
        return [
            SavedLabel.from_design(record, thumbnail=render_thumbnail(record)).model_dump(mode="json", by_alias=True)
            for record in records
        ]

    async def action():
        records = await LocalStore(config.data_dir).list()
        return await asyncio.to_thread(flatten, records)

    rows = _run(action())
    with open(path, "w", encoding="utf-8") as f:
        json.dump(rows, f, ensure_ascii=False, indent=2)
    click.echo(f"✅ Wrote {len(rows)} saved labels to {path}")


@main.command(help="Show export history.")
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True, help="Records to show")
@click.option("--cleanup", is_flag=True, default=False, help=f"Keep only the {HISTORY_LIMIT} newest records")
@click.pass_obj
def history(config: AppConfig, limit: int, cleanup: bool):
    local = LocalStore(config.data_dir)
    if cleanup:
        removed = _run(local.cleanup_history())
        click.echo(f"🧹 Removed {removed} old history records")
    for record in _run(local.list_history(limit)):
        click.echo(f"{record.created_at:%Y-%m-%d %H:%M:%S}  {record.format or '-':<4} {record.filename or record.product_name}")


@main.command(help="Show or change user settings.")
@click.option("--language", type=str, default=None, help="UI language, e.g. zh-CN")
@click.option("--auto-save/--no-auto-save", "auto_save", default=None, help="Toggle auto save")
@click.pass_obj
def settings(config: AppConfig, language: Optional[str], auto_save: Optional[bool]):
    local = LocalStore(config.data_dir)
    current = _run(local.get_settings())
    updates = {}
    if language is not None:
        updates["language"] = language
    if auto_save is not None:
        updates["auto_save_enabled"] = auto_save
    if updates:
        current = current.model_copy(update=updates)
        _run(local.save_settings(current))
    click.echo(json.dumps(current.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2))


@main.command(help="Sign in to the cloud store and print the session token.")
@click.argument("email")
@click.password_option(confirmation_prompt=False)
@click.pass_obj
def login(config: AppConfig, email: str, password: str):
    if not config.remote_configured:
        click.echo("❌ Cloud store not configured (set SUPABASE_URL and SUPABASE_ANON_KEY).")
        raise SystemExit(1)

    async def action():
        async with RemoteStore.from_config(config) as remote:
            principal = await remote.sign_in(email, password)
            return principal, remote.access_token

    principal, token = _run(action())
    click.echo(f"✅ Signed in as {principal.email or principal.id}")
    click.echo(f"export SUPABASE_ACCESS_TOKEN={token}")


if __name__ == "__main__":
    main()
