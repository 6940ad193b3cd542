import pytest
from pymongo.errors import DuplicateKeyError

from cache import normalize_pokemon
from conftest import make_pokemon_payload


def record(pokemon_id):
    return normalize_pokemon(make_pokemon_payload(pokemon_id))


class TestPokemonStore:
    def test_insert_sets_timestamps(self, store):
        stored = store.insert(record(1))

        assert stored["name"] == "bulbasaur"
        assert stored["createdAt"] is not None
        assert stored["updatedAt"] is not None
        assert "_id" not in stored

    def test_insert_rejects_duplicate_id_or_name(self, store):
        store.insert(record(1))

        with pytest.raises(DuplicateKeyError):
            store.insert(record(1))

        clash = dict(record(2), name="bulbasaur")
        with pytest.raises(DuplicateKeyError):
            store.insert(clash)

    def test_find_one_by_id_and_name(self, store):
        store.insert(record(25))

        assert store.find_one(25)["name"] == "pikachu"
        assert store.find_one("PIKACHU")["id"] == 25
        assert store.find_one(26) is None

    def test_count_and_search_are_case_insensitive_substring(self, store):
        for pokemon_id in (1, 2, 3, 25):
            store.insert(record(pokemon_id))

        assert store.count() == 4
        assert store.count("SAUR") == 3
        assert [p["name"] for p in store.find_many("saur")] == ["bulbasaur", "ivysaur", "venusaur"]

    def test_search_escapes_regex(self, store):
        store.insert(record(1))
        assert store.count(".*") == 0

    def test_find_many_projects_and_pages(self, store):
        for pokemon_id in (7, 3, 1, 2):
            store.insert(record(pokemon_id))

        page = store.find_many(skip=1, limit=2)

        assert [p["id"] for p in page] == [2, 3]
        assert set(page[0]) == {"id", "name", "sprites", "types"}

    def test_upsert_sets_fields(self, store):
        store.insert(record(1))

        updated = store.upsert({"id": 1}, {"evolutionChain": {"id": 1}})

        assert updated["evolutionChain"] == {"id": 1}
        assert store.find_one(1)["evolutionChain"] == {"id": 1}

    def test_insert_if_absent(self, store):
        stored, inserted = store.insert_if_absent(record(1))
        assert inserted is True

        again, inserted = store.insert_if_absent(record(1))
        assert inserted is False
        assert again["createdAt"] == stored["createdAt"]
        assert store.count() == 1

    def test_insert_if_absent_resolves_concurrent_insert(self, store, mocker):
        store.insert(record(1))
        mocker.patch.object(store.col, "update_one", side_effect=DuplicateKeyError("E11000 duplicate key"))

        stored, inserted = store.insert_if_absent(record(1))

        assert inserted is False
        assert stored["name"] == "bulbasaur"

    def test_insert_if_absent_id_conflict_raises(self, store):
        store.insert(record(1))

        with pytest.raises(DuplicateKeyError):
            store.insert_if_absent(dict(record(1), name="impostor"))

    def test_exists(self, store):
        store.insert(record(4))
        assert store.exists("charmander")
        assert not store.exists("charmeleon")
