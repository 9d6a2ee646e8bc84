"""
Client for the Warrior recreation booking site (warrior.uwaterloo.ca)

A program's schedule page embeds its appointments and dates as JSON in hidden
inputs; the open spot count of each session is rendered by a second,
XHR-style form POST.
"""

import json
import logging
import re
import time
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter

from errors import NetworkError, RateLimitedError, UnexpectedResponseError
from models import AvailabilitySnapshot, SessionSlot

logger = logging.getLogger(__name__)

BASE_URL = 'https://warrior.uwaterloo.ca'
GET_URL = f"{BASE_URL}/Program/GetProgramInstances"
FILTER_URL = f"{BASE_URL}/Program/FilterProgramInstances"

EMPTY_GUID = '00000000-0000-0000-0000-000000000000'

# Fields the site expects on every appointment in the filter form
DEFAULT_APPOINTMENT_FIELDS = {
    'RecurrenceInfo': '',
    'AppointmentType': '0',
    'Subject': '',
    'AllDay': 'false',
    'ResourceId': '',
    'Status': '0',
    'ProductId': EMPTY_GUID,
    'ProgramDescription': '',
    'ProgramInstanceId': EMPTY_GUID,
    'NumberRegistered': '0',
    'NumberOnWaitlist': '0',
    'ClassSize': '12',
    'PortalURL': '',
    'InstructorFirstNameLastInitial': '',
    'IsInstructor': 'false',
    'InstructorId': EMPTY_GUID,
    'IsRecurring': 'false',
}

SPOTS_NUMBER = re.compile(r'\d+')
ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}')


def program_url(program_id: str) -> str:
    """Booking page for a program, used as the notification click target"""
    return f"{GET_URL}?programID={program_id}"


def parse_spots_text(text: str) -> int:
    """Turn the '.spots-tag' label into an open spot count ('Full' and friends mean 0)"""
    match = SPOTS_NUMBER.search(text or '')
    return int(match.group()) if match else 0


class AvailabilityClient:
    def __init__(self, timeout: float = 10, pool_size: int = 4,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session if session is not None else self._create_session(pool_size)

    def _create_session(self, pool_size: int) -> requests.Session:
        """Create a session with the headers the site's own XHR calls send"""
        session = requests.Session()
        session.headers.update({
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:138.0) Gecko/20100101 Firefox/138.0',
            'Accept': '*/*',
            'X-Requested-With': 'XMLHttpRequest',
            'Origin': BASE_URL,
        })
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        session.mount('https://', adapter)
        session.mount('http://', adapter)
        return session

    def close(self):
        self.session.close()

    def check(self, program_id: str) -> AvailabilitySnapshot:
        """
        Check one program and return its availability snapshot.
        The timeout bounds the whole check, not each request; running past it
        raises NetworkError.
        Raises NetworkError, RateLimitedError or UnexpectedResponseError.
        """
        deadline = time.monotonic() + self.timeout
        appointments, dates = self._fetch_program(program_id, deadline)

        sessions = []
        for date_iso in dates:
            date = date_iso[:10]
            appt = next((a for a in appointments if a['StartDate'].startswith(date)), None)
            if appt is None:
                continue

            spots = self._fetch_spots(program_id, appt, date, deadline)
            start = appt['StartDate']
            sessions.append(SessionSlot(
                appointment_id=appt['ID'],
                product_name=appt.get('ProductName', ''),
                date=date,
                time=start.split('T', 1)[1] if 'T' in start else '',
                open_spots=spots,
            ))

        total = sum(s.open_spots for s in sessions)
        logger.debug(f"Program {program_id}: {len(sessions)} sessions, {total} open spots")
        return AvailabilitySnapshot(
            program_id=program_id,
            open_slot_count=total,
            checked_at=datetime.now(),
            sessions=sessions,
        )

    def _request(self, program_id: str, method: str, url: str, deadline: float,
                 **kwargs) -> requests.Response:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise NetworkError(program_id, f"check timed out after {self.timeout}s")
        try:
            resp = self.session.request(method, url, timeout=remaining, **kwargs)
        except requests.Timeout as e:
            raise NetworkError(program_id, f"timed out after {self.timeout}s: {e}") from e
        except requests.RequestException as e:
            raise NetworkError(program_id, str(e)) from e
        if time.monotonic() > deadline:
            raise NetworkError(program_id, f"check timed out after {self.timeout}s")

        if resp.status_code == 429:
            raise RateLimitedError(program_id, 'HTTP 429', _retry_after(resp))
        if not 200 <= resp.status_code < 300:
            raise UnexpectedResponseError(program_id, f"HTTP {resp.status_code} from {url}")
        return resp

    def _fetch_program(self, program_id: str, deadline: float) -> Tuple[List[Dict], List[str]]:
        """Fetch the appointments and dates embedded in the program page"""
        resp = self._request(program_id, 'GET', GET_URL, deadline, params={'programID': program_id})
        soup = BeautifulSoup(resp.text, 'html.parser')

        appointments = _hidden_json(soup, 'ApptInfo', program_id)
        dates = _hidden_json(soup, 'hdnDates', program_id)

        if not isinstance(appointments, list) or not isinstance(dates, list):
            raise UnexpectedResponseError(program_id, 'ApptInfo/hdnDates are not JSON lists')
        for appt in appointments:
            if not isinstance(appt, dict) or 'ID' not in appt or 'StartDate' not in appt:
                raise UnexpectedResponseError(program_id, f"Malformed appointment: {appt!r}")
        if not all(isinstance(d, str) and ISO_DATE.match(d) for d in dates):
            raise UnexpectedResponseError(program_id, f"Malformed dates: {dates!r}")

        return appointments, dates

    def _fetch_spots(self, program_id: str, appt: Dict, date: str, deadline: float) -> int:
        """Fetch the open spot count of one appointment on one date"""
        prefix = 'appointments[0]'
        form = {
            f"{prefix}[ID]": appt['ID'],
            f"{prefix}[StartDate]": appt['StartDate'],
            f"{prefix}[EndDate]": appt.get('EndDate', ''),
            f"{prefix}[Location]": appt.get('Location', ''),
            f"{prefix}[ProductName]": appt.get('ProductName', ''),
        }
        for key, value in DEFAULT_APPOINTMENT_FIELDS.items():
            form[f"{prefix}[{key}]"] = value

        year, month, day = date.split('-')
        form.update({
            # The filter endpoint keys on the first segment of the appointment id
            'programID': appt['ID'].split('-')[0],
            'year': year,
            'month': month.lstrip('0'),
            'day': day.lstrip('0'),
        })

        resp = self._request(program_id, 'POST', FILTER_URL, deadline, data=form)
        soup = BeautifulSoup(resp.text, 'html.parser')
        tag = soup.select_one(f"div[data-instance-appointmentid='{appt['ID']}'] .spots-tag")
        if tag is None:
            logger.debug(f"No spots tag for appointment {appt['ID']} on {date}")
            return 0
        return parse_spots_text(tag.get_text(strip=True))


def _hidden_json(soup: BeautifulSoup, input_id: str, program_id: str):
    element = soup.select_one(f"input#{input_id}")
    raw = element.get('value') if element is not None else None
    if raw is None:
        raise UnexpectedResponseError(program_id, f"Missing #{input_id} input")
    try:
        return json.loads(raw)
    except ValueError as e:
        raise UnexpectedResponseError(program_id, f"Invalid JSON in #{input_id}: {e}") from e


def _retry_after(resp: requests.Response) -> Optional[float]:
    value = resp.headers.get('Retry-After')
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


