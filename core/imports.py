from flask import Flask, request, jsonify, Blueprint, render_template, current_app, g
from flask_jwt_extended import create_access_token, get_jwt_identity, jwt_required, JWTManager, get_jwt, verify_jwt_in_request
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import IntegrityError
from flask_migrate import Migrate
from sqlalchemy import func, or_, case
from flask_bcrypt import Bcrypt
from flasgger import Swagger
from flask_mail import Mail, Message
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename
from datetime import datetime, timedelta, timezone
from functools import wraps
import secrets
import requests
import cloudinary
import cloudinary.uploader
import hashlib
import hmac
import re
import math
