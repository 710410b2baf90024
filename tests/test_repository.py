from copo.models.academics import Department
from copo.services import repository


async def test_create_get_list_count(db_session):
    cse = await repository.departments.create(db_session, {"name": "CSE"})
    await repository.departments.create(db_session, {"name": "ECE"})

    assert (await repository.departments.get(db_session, cse.id)).name == "CSE"
    assert [d.name for d in await repository.departments.list(db_session)] == ["CSE", "ECE"]
    assert await repository.departments.count(db_session, Department.name == "ECE") == 1
    assert await repository.departments.first(db_session, Department.name == "MECH") is None


async def test_update_and_delete_by_id(db_session):
    cse = await repository.departments.create(db_session, {"name": "CSE"})

    updated = await repository.departments.update(db_session, cse.id, {"hod_id": 7})
    assert updated.hod_id == 7
    assert await repository.departments.update(db_session, 999, {"hod_id": 1}) is None

    assert await repository.departments.delete(db_session, cse.id) is True
    assert await repository.departments.delete(db_session, cse.id) is False
    assert await repository.departments.count(db_session) == 0


async def test_uncommitted_writes_roll_back_together(db_session, fetch_all):
    await repository.departments.create(db_session, {"name": "CSE"}, commit=False)
    await repository.departments.create(db_session, {"name": "ECE"}, commit=False)
    assert await repository.departments.count(db_session) == 2

    await db_session.rollback()

    assert await fetch_all(Department) == []
