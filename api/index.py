from mangum import Mangum

from gamify_ledger.api import app

handler = Mangum(app, lifespan="off")
