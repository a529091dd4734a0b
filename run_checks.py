from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)

print('ROOT:')
print(client.get('/').json())

print('\nHEALTH:')
print(client.get('/health').json())

print('\nDB HEALTH:')
try:
    resp = client.get('/health/db')
    print(resp.status_code)
    try:
        print(resp.json())
    except Exception:
        print(resp.text)
except Exception as e:
    print('DB call raised exception:', e)

print('\nLOCALES:')
print(client.get('/api/i18n/locales').json()['default'])

print('\nLATEST REPORTS:')
resp = client.get('/api/latest-reports')
print(resp.status_code, resp.headers.get('cache-control'))

print('\nMAP (no location):')
print(client.get('/api/outages/map').json())

print('\nPROTECTED PAGE WITHOUT SESSION:')
resp = client.get('/hi/report', follow_redirects=False)
print(resp.status_code, resp.headers.get('location'))
