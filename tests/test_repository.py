import asyncio
import json

import pytest

from fakes import FailingStore, SlowStore, make_record

from vocabmaster.exceptions import PersistenceIOError, ValidationError
from vocabmaster.services.repository import (
    InMemoryStore,
    LocalFileStore,
    MirrorFileStore,
    WordRepository,
    extract_records,
)
from vocabmaster.services.scheduler import DAY_MS

NOW = 1_700_000_000_000


def run(coro):
    return asyncio.run(coro)


async def open_repo(primary=None, mirror=None):
    repo = WordRepository(primary or InMemoryStore(), mirror=mirror)
    await repo.load()
    return repo


class TestUpsertAndRead:

    def test_create_fills_scheduler_defaults(self):
        async def scenario():
            repo = await open_repo()
            stored = await repo.upsert(make_record("Run"), now=NOW)
            return stored, await repo.get("  RUN ")

        stored, fetched = run(scenario())
        assert stored.key == "run"
        assert stored.level == 0
        assert stored.review_count == 0
        assert stored.added_at == NOW
        assert stored.next_review_at == NOW + DAY_MS
        assert fetched == stored

    def test_replace_keeps_stored_review_state(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run", level=3, review_count=5), now=NOW)
            await repo.upsert(make_record("run", translation="跑"), now=NOW + 1)
            return await repo.get("run")

        record = run(scenario())
        assert record.translation == "跑"
        assert record.level == 3
        assert record.review_count == 5
        assert record.added_at == NOW

    def test_returned_records_are_copies(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run"))
            record = await repo.get("run")
            record.translation = "changed"
            return await repo.get("run")

        assert run(scenario()).translation == ""

    def test_get_missing_and_delete(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run"))
            first = await repo.delete("RUN")
            second = await repo.delete("run")
            return first, second, await repo.get("run"), repo.count

        assert run(scenario()) == (True, False, None, 0)

    @pytest.mark.parametrize("fields", [{"level": 99}, {"level": -1}, {"review_count": -3}])
    def test_out_of_range_scheduler_fields_rejected(self, fields):
        async def scenario():
            store = InMemoryStore()
            repo = await open_repo(store)
            with pytest.raises(ValueError):
                await repo.upsert(make_record("run", **fields), now=NOW)
            return repo.count, store.writes

        assert run(scenario()) == (0, 0)

    def test_rejected_upsert_keeps_file_loadable(self, tmp_path):
        path = tmp_path / "words.json"

        async def scenario():
            async with WordRepository.open(LocalFileStore(path)) as repo:
                await repo.upsert(make_record("walk"), now=NOW)
                with pytest.raises(ValueError):
                    await repo.upsert(make_record("run", level=99), now=NOW)
            async with WordRepository.open(LocalFileStore(path)) as repo:
                return [r.key for r in await repo.get_all()]

        assert run(scenario()) == ["walk"]

    def test_key_locks_are_released(self):
        async def scenario():
            repo = await open_repo(SlowStore())
            await asyncio.gather(*(repo.upsert(make_record(f"word{i}")) for i in range(5)))
            await asyncio.gather(
                repo.update("word0", {"level": 1}),
                repo.update("word0", {"translation": "词"}),
                repo.delete("word1"),
            )
            return repo._locks, await repo.get("word0")

        locks, record = run(scenario())
        assert locks == {}
        assert (record.level, record.translation) == (1, "词")


class TestUpdate:

    def test_merges_only_given_fields(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run", translation="跑"), now=NOW)
            await repo.update("run", {"level": 2})
            return await repo.get("run")

        record = run(scenario())
        assert record.level == 2
        assert record.translation == "跑"
        assert record.meanings

    def test_absent_key_is_noop(self):
        async def scenario():
            repo = await open_repo()
            return await repo.update("ghost", {"level": 1}), repo.count

        assert run(scenario()) == (None, 0)

    def test_unknown_field_rejected(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run"))
            await repo.update("run", {"color": "red"})

        with pytest.raises(ValueError):
            run(scenario())

    def test_concurrent_disjoint_updates_both_land(self):
        async def scenario():
            repo = await open_repo(SlowStore())
            await repo.upsert(make_record("run"), now=NOW)
            await asyncio.gather(
                repo.update("run", {"translation": "跑"}),
                repo.update("run", {"level": 4}),
                repo.update("run", {"phonetic": "/rʌn/"}),
            )
            return await repo.get("run")

        record = run(scenario())
        assert record.translation == "跑"
        assert record.level == 4
        assert record.phonetic == "/rʌn/"


class TestTransaction:

    def test_commit_on_normal_exit(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run"))
            async with repo.transaction("run") as record:
                record.extras_cache["synonyms"] = [{"word": "sprint", "explanation": "冲刺"}]
            return await repo.get("run")

        assert "synonyms" in run(scenario()).extras_cache

    def test_rollback_on_exception(self):
        async def scenario():
            repo = await open_repo()
            await repo.upsert(make_record("run", translation="跑"))
            with pytest.raises(RuntimeError):
                async with repo.transaction("run") as record:
                    record.translation = "half-done"
                    raise RuntimeError("abort")
            return await repo.get("run")

        assert run(scenario()).translation == "跑"

    def test_failed_write_rolls_back_and_raises(self):
        async def scenario():
            store = FailingStore(fail=False)
            repo = await open_repo(store)
            await repo.upsert(make_record("run", translation="跑"))
            store.fail = True
            with pytest.raises(PersistenceIOError):
                await repo.update("run", {"translation": "lost"})
            with pytest.raises(PersistenceIOError):
                await repo.upsert(make_record("walk"))
            return await repo.get("run"), await repo.get("walk")

        run_record, walk_record = run(scenario())
        assert run_record.translation == "跑"
        assert walk_record is None


class TestImportExport:

    def test_round_trip(self):
        async def scenario():
            source = await open_repo()
            await source.upsert(make_record("run", translation="跑", level=2, review_count=3), now=NOW)
            await source.upsert(make_record("hello", display_word="你好", translation="Hello."), now=NOW)
            exported = await source.export()

            target = await open_repo()
            result = await target.import_payload(json.dumps(exported))
            return exported, result, await source.get_all(), await target.get_all()

        exported, result, original, imported = run(scenario())
        assert exported["version"] == 1
        assert exported["wordCount"] == 2
        assert result.imported == 2 and result.skipped == 0
        assert sorted(imported, key=lambda r: r.key) == sorted(original, key=lambda r: r.key)

    def test_existing_keys_win(self):
        async def scenario():
            repo = await open_repo()
            for i in range(3):
                await repo.upsert(make_record(f"word{i}", translation="local", level=5), now=NOW)
            payload = {"words": [
                make_record(f"word{i}", translation="incoming", level=1,
                            next_review_at=NOW, added_at=NOW).to_dict()
                for i in range(10)
            ]}
            result = await repo.import_payload(payload)
            return result, await repo.get("word0"), await repo.get("word9"), repo.count

        result, kept, added, count = run(scenario())
        assert (result.imported, result.skipped) == (7, 3)
        assert kept.translation == "local" and kept.level == 5
        assert added.translation == "incoming" and added.level == 1
        assert added.next_review_at == NOW
        assert count == 10

    def test_bare_list_and_bytes_accepted(self):
        async def scenario():
            repo = await open_repo()
            payload = json.dumps([{"word": "run"}, {"word": "walk"}]).encode("utf-8")
            return await repo.import_payload(payload, now=NOW), await repo.get("walk")

        result, walk = run(scenario())
        assert result.imported == 2
        assert walk.level == 0
        assert walk.next_review_at == NOW + DAY_MS

    @pytest.mark.parametrize("payload", [
        "not json",
        {},
        {"words": []},
        [],
        42,
        [{"word": "ok"}, {"translation": "no key"}],
        [{"word": "ok"}, "not an object"],
        [{"word": "ok"}, {"word": "bad", "level": 99}],
        [{"word": "bad", "reviewCount": -1}],
        [{"word": "bad", "nextReviewAt": "tomorrow"}],
        [{"word": "x", "meanings": ["not an object"]}],
        [{"word": "x", "meanings": [{"partOfSpeech": "noun", "definitions": ["plain text"]}]}],
        [{"word": "x", "meanings": [{"partOfSpeech": "noun", "definitions": {"definition": "d"}}]}],
        [{"word": "x", "meanings": [{"definitions": [{"definition": "d", "synonyms": "sprint"}]}]}],
        [{"word": "x", "meanings": [{"definitions": [{"definition": "d", "examples": "an example"}]}]}],
        [{"word": "x", "extrasCache": ["synonyms"]}],
        [{"word": "x", "translation": ["跑"]}],
    ])
    def test_invalid_payload_commits_nothing(self, payload):
        async def scenario():
            store = InMemoryStore()
            repo = await open_repo(store)
            with pytest.raises(ValidationError):
                await repo.import_payload(payload)
            return repo.count, store.writes

        assert run(scenario()) == (0, 0)

    def test_extract_records_accepts_bom(self):
        raw = "\ufeff" + json.dumps({"words": [{"word": "run"}]})
        assert extract_records(raw.encode("utf-8")) == [{"word": "run"}]


class TestFileStores:

    def test_persists_across_sessions(self, tmp_path):
        path = tmp_path / "data" / "words.json"

        async def scenario():
            async with WordRepository.open(LocalFileStore(path)) as repo:
                await repo.upsert(make_record("run", translation="跑"))
            async with WordRepository.open(LocalFileStore(path)) as repo:
                return await repo.get("run")

        assert run(scenario()).translation == "跑"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["words"][0]["word"] == "run"
        assert not list(path.parent.glob("*.tmp"))

    def test_every_write_reaches_the_mirror(self, tmp_path):
        mirror_dir = tmp_path / "cloud"

        async def scenario():
            async with WordRepository.open(
                LocalFileStore(tmp_path / "local.json"), mirror=MirrorFileStore(mirror_dir)
            ) as repo:
                await repo.upsert(make_record("run"))
                await repo.upsert(make_record("walk"))

        run(scenario())
        data = json.loads((mirror_dir / MirrorFileStore.DEFAULT_FILE_NAME).read_text(encoding="utf-8"))
        assert sorted(w["word"] for w in data["words"]) == ["run", "walk"]

    def test_empty_local_restores_from_mirror(self, tmp_path):
        mirror = MirrorFileStore(tmp_path / "cloud")
        local_path = tmp_path / "local.json"

        async def scenario():
            await mirror.save({"words": [make_record("run", level=2).to_dict()]})
            async with WordRepository.open(LocalFileStore(local_path), mirror=mirror) as repo:
                return await repo.get("run")

        assert run(scenario()).level == 2
        assert json.loads(local_path.read_text(encoding="utf-8"))["words"][0]["word"] == "run"

    def test_local_takes_precedence_over_mirror(self):
        async def scenario():
            local = InMemoryStore({"words": [make_record("local").to_dict()]})
            mirror = InMemoryStore({"words": [make_record("remote").to_dict()]})
            repo = await open_repo(local, mirror)
            return [r.key for r in await repo.get_all()]

        assert run(scenario()) == ["local"]

    def test_mirror_failure_does_not_fail_the_write(self):
        async def scenario():
            primary = InMemoryStore()
            repo = await open_repo(primary, FailingStore())
            await repo.upsert(make_record("run"))
            return primary.writes, await repo.get("run")

        writes, record = run(scenario())
        assert writes == 1
        assert record is not None

    def test_corrupt_local_file_raises(self, tmp_path):
        path = tmp_path / "words.json"
        path.write_text("{broken", encoding="utf-8")

        async def scenario():
            async with WordRepository.open(LocalFileStore(path)):
                pass

        with pytest.raises(PersistenceIOError):
            run(scenario())

    def test_unknown_fields_survive_a_save(self, tmp_path):
        path = tmp_path / "words.json"
        path.write_text(json.dumps([{"word": "run", "customTag": "verbs"}]), encoding="utf-8")

        async def scenario():
            async with WordRepository.open(LocalFileStore(path)) as repo:
                await repo.update("run", {"level": 1})

        run(scenario())
        word = json.loads(path.read_text(encoding="utf-8"))["words"][0]
        assert word["customTag"] == "verbs"
        assert word["level"] == 1


def test_export_csv(tmp_path):
    csv_path = tmp_path / "export" / "words.csv"

    async def scenario():
        repo = await open_repo()
        await repo.upsert(make_record("run", translation="跑"), now=NOW)
        return await repo.export_csv(csv_path)

    assert run(scenario()) == 1
    lines = csv_path.read_text(encoding="utf-8-sig").splitlines()
    assert lines[0].split("|")[:4] == ["Word", "DisplayWord", "Phonetic", "Translation"]
    assert lines[1].startswith("run|run|")
