from fieldsync.models import InventoryItem, Job, WarehouseStock


def make_job(org, uid="job-1", materials=None, **fields):
    if materials is None:
        materials = {"openCellSets": 10, "closedCellSets": 0, "inventory": []}
    return Job.objects.create(organization=org, uid=uid, materials=materials, **fields)


def set_stock(org, open_cell=0.0, closed_cell=0.0):
    WarehouseStock.objects.filter(organization=org).update(
        open_cell_sets=open_cell, closed_cell_sets=closed_cell
    )


def stock(org):
    return WarehouseStock.objects.get(organization=org)


def make_item(org, uid, name, quantity, unit_cost=0.0):
    return InventoryItem.objects.create(
        organization=org, uid=uid, name=name, quantity=quantity, unit_cost=unit_cost
    )
